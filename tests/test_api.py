"""HTTP routes with collaborators replaced through dependency overrides."""

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from reelforge.api import deps
from reelforge.api.router import api_router
from reelforge.api.videos import generate_videos
from reelforge.config import Settings
from reelforge.errors import ProviderError, UnsupportedRequest
from reelforge.schemas.generation import GenerateRequest
from reelforge.services.migration import MigrationTrigger
from reelforge.services.orchestrator import Orchestrator
from reelforge.services.provider_registry import ProviderRegistry
from reelforge.services.reconciler import StatusReconciler

from fakes import FakeAdapter, FakeJobStore, FakeLedger, FakeStorage, completed, processing

USER = {"X-User-Id": "user-1"}


class Backend:
    def __init__(self, luma=None, runway=None, balance=100, store=None):
        self.luma = luma or FakeAdapter("luma")
        self.runway = runway or FakeAdapter("runway")
        self.store = store or FakeJobStore()
        self.storage = FakeStorage()
        self.ledger = FakeLedger({"user-1": balance})

        registry = ProviderRegistry([self.luma, self.runway, FakeAdapter("replicate")])
        orchestrator = Orchestrator(registry, self.store, cost_per_scene=10)
        reconciler = StatusReconciler(registry, self.store, MigrationTrigger(self.store, self.storage))

        self.app = FastAPI()
        self.app.include_router(api_router)
        self.app.dependency_overrides.update({
            deps.get_orchestrator: lambda: orchestrator,
            deps.get_reconciler: lambda: reconciler,
            deps.get_job_store: lambda: self.store,
            deps.get_ledger: lambda: self.ledger,
            deps.get_storage: lambda: self.storage,
            deps.get_app_settings: lambda: Settings(DOWNLOAD_URL_TTL=3600),
        })
        self.client = TestClient(self.app)

    def generate(self, **body):
        return self.client.post("/api/videos/generate", json={"prompt": "A cat", **body}, headers=USER)


@pytest.fixture
def backend():
    return Backend()


def test_generate_dispatches_three_variations(backend):
    resp = backend.generate(image_url="https://img.test/cat.png")

    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "Generation started"
    assert data["total_cost"] == 30
    assert [j["provider"] for j in data["jobs"]] == ["luma", "runway", "luma"]
    assert [j["variation"] for j in data["jobs"]] == [0, 1, 2]
    assert all(j["state"] == "pending" for j in data["jobs"])
    assert backend.ledger.balances["user-1"] == 70


def test_generate_requires_user_header(backend):
    resp = backend.client.post("/api/videos/generate", json={"prompt": "A cat"})

    assert resp.status_code == 401


def test_generate_rejects_empty_prompt(backend):
    resp = backend.generate(prompt="")

    assert resp.status_code == 422
    assert backend.luma.submitted == []


def test_insufficient_credits_is_403_and_nothing_submitted():
    backend = Backend(balance=20)

    resp = backend.generate()

    assert resp.status_code == 403
    assert resp.json()["detail"] == {"error": "Insufficient credits", "required": 30, "available": 20}
    assert backend.luma.submitted == []
    assert backend.ledger.balances["user-1"] == 20


def test_provider_failure_is_502_and_refunded():
    backend = Backend(runway=FakeAdapter("runway", submit_error=ProviderError("runway", "quota", 429)))

    resp = backend.generate()

    assert resp.status_code == 502
    assert "quota" in resp.json()["detail"]
    assert backend.ledger.balances["user-1"] == 100
    assert backend.store.rows == {}


def test_unsupported_request_is_400_and_refunded():
    backend = Backend(runway=FakeAdapter("runway", submit_error=UnsupportedRequest("runway", "needs image")))

    resp = backend.generate()

    assert resp.status_code == 400
    assert backend.ledger.balances["user-1"] == 100


def test_unregistered_provider_is_500_and_refunded():
    backend = Backend()
    registry = ProviderRegistry([backend.luma])
    broken = Orchestrator(registry, backend.store)
    backend.app.dependency_overrides[deps.get_orchestrator] = lambda: broken

    resp = backend.generate()

    assert resp.status_code == 500
    assert backend.ledger.balances["user-1"] == 100


class UnwritableJobStore(FakeJobStore):
    async def create_job_group(self, user_id, prompt, jobs):
        raise ConnectionError("database went away")


def test_persistence_failure_after_submission_is_refunded():
    backend = Backend(store=UnwritableJobStore())
    client = TestClient(backend.app, raise_server_exceptions=False)

    resp = client.post("/api/videos/generate", json={"prompt": "A cat"}, headers=USER)

    assert resp.status_code == 500
    assert backend.luma.completed_submissions == 2
    assert backend.runway.completed_submissions == 1
    assert backend.store.rows == {}
    assert backend.ledger.balances["user-1"] == 100


async def test_abandoned_generate_request_is_refunded():
    luma = FakeAdapter("luma", submit_delay=0.05)
    runway = FakeAdapter("runway", submit_delay=0.05)
    store = FakeJobStore()
    orchestrator = Orchestrator(ProviderRegistry([luma, runway]), store, cost_per_scene=10)
    ledger = FakeLedger({"user-1": 100})

    task = asyncio.create_task(
        generate_videos(GenerateRequest(prompt="A cat"), "user-1", orchestrator, ledger)
    )
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.1)

    assert store.rows == {}
    assert ledger.balances["user-1"] == 100


def test_status_refreshes_group_with_per_job_errors(backend):
    parent_id = backend.generate().json()["parent_id"]
    tasks = [row["provider_task_id"] for row in sorted(backend.store.rows.values(), key=lambda r: r["variation_index"])]
    backend.luma.script(tasks[0], completed("https://luma.test/0.mp4"))
    backend.runway.script(tasks[1], ProviderError("runway", "gateway timeout", 504))
    backend.luma.script(tasks[2], processing(40))

    resp = backend.client.get(f"/api/videos/status/{parent_id}", headers=USER)

    assert resp.status_code == 200
    data = resp.json()
    assert data["parent_id"] == parent_id
    assert data["all_terminal"] is False
    first, second, third = data["jobs"]
    assert first["status"] == "completed" and first["migrated"] is True
    assert first["error"] is None
    assert "gateway timeout" in second["error"]
    assert second["status"] == "pending"
    assert third["status"] == "processing" and third["progress"] == 40


def test_status_accepts_a_single_job_id(backend):
    job_id = backend.generate().json()["jobs"][1]["job_id"]

    resp = backend.client.get(f"/api/videos/status/{job_id}", headers=USER)

    assert resp.status_code == 200
    assert [j["id"] for j in resp.json()["jobs"]] == [job_id]


def test_status_of_unknown_or_foreign_group_is_404(backend):
    parent_id = backend.generate().json()["parent_id"]

    assert backend.client.get("/api/videos/status/nope", headers=USER).status_code == 404
    resp = backend.client.get(f"/api/videos/status/{parent_id}", headers={"X-User-Id": "user-2"})
    assert resp.status_code == 404


def test_download_not_ready_is_400(backend):
    job_id = backend.generate().json()["jobs"][0]["job_id"]

    resp = backend.client.get(f"/api/videos/download/{job_id}", headers=USER)

    assert resp.status_code == 400


def test_download_after_migration_is_signed(backend):
    generated = backend.generate().json()
    job_id = generated["jobs"][0]["job_id"]
    backend.luma.script(generated["jobs"][0]["task_id"], completed())
    backend.client.get(f"/api/videos/status/{generated['parent_id']}", headers=USER)

    resp = backend.client.get(f"/api/videos/download/{job_id}", headers=USER)

    assert resp.status_code == 200
    assert resp.json() == {
        "download_url": f"https://signed.example.com/videos/user-1/{job_id}.mp4?expires=3600",
        "expires_in": 3600,
        "source": "durable",
    }


def test_download_of_foreign_job_is_404(backend):
    job_id = backend.generate().json()["jobs"][0]["job_id"]

    resp = backend.client.get(f"/api/videos/download/{job_id}", headers={"X-User-Id": "user-2"})

    assert resp.status_code == 404


def test_health():
    from reelforge.main import app

    resp = TestClient(app).get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
