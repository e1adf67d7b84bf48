"""Provider adapters against a mocked HTTP transport."""

import json

import httpx
import pytest

from reelforge.errors import ProviderError, UnsupportedRequest
from reelforge.models.job import JobState
from reelforge.services.providers import (
    GenerationRequest,
    LumaAdapter,
    ReplicateAdapter,
    RunwayAdapter,
)
from reelforge.services.providers.base import normalize_progress
from reelforge.services.providers.runway import calculate_cost


def mock_client(handler, seen=None):
    def record(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(record))


def luma(client):
    return LumaAdapter(api_key="luma-key", base_url="https://luma.test/v1", http_client=client)


def runway(client):
    return RunwayAdapter(
        api_key="rw-key", base_url="https://runway.test/v1", api_version="2024-11-06", http_client=client
    )


def replicate(client):
    return ReplicateAdapter(
        api_key="rep-key", base_url="https://replicate.test/v1", model_version="svd-v1", http_client=client
    )


# ---------- luma ----------

async def test_luma_submit_text_only():
    seen = []
    async with mock_client(lambda r: httpx.Response(201, json={"id": "gen-1", "state": "queued"}), seen) as client:
        handle = await luma(client).submit(GenerationRequest(prompt="a cat", provider="luma"))

    assert handle.provider == "luma"
    assert handle.task_id == "gen-1"
    assert handle.state is JobState.PENDING

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/generations"
    assert request.headers["Authorization"] == "Bearer luma-key"
    body = json.loads(request.content)
    assert body == {"prompt": "a cat", "aspect_ratio": "16:9", "loop": False}


async def test_luma_submit_with_seed_image():
    seen = []
    async with mock_client(lambda r: httpx.Response(201, json={"id": "gen-2"}), seen) as client:
        await luma(client).submit(
            GenerationRequest(prompt="a cat", provider="luma", image_url="https://img.test/cat.png")
        )

    body = json.loads(seen[0].content)
    assert body["image_url"] == "https://img.test/cat.png"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("queued", JobState.PENDING),
        ("dreaming", JobState.PROCESSING),
        ("completed", JobState.COMPLETED),
        ("failed", JobState.FAILED),
        ("paused", JobState.UNKNOWN),
    ],
)
async def test_luma_state_vocabulary(raw, expected):
    async with mock_client(lambda r: httpx.Response(200, json={"id": "gen-1", "state": raw})) as client:
        status = await luma(client).query_status("gen-1")

    assert status.state is expected
    assert status.raw_state == raw


async def test_luma_completed_exposes_assets():
    payload = {
        "id": "gen-1",
        "state": "completed",
        "assets": {"video": "https://cdn.luma.test/v.mp4", "image": "https://cdn.luma.test/t.jpg"},
    }
    seen = []
    async with mock_client(lambda r: httpx.Response(200, json=payload), seen) as client:
        status = await luma(client).query_status("gen-1")

    assert seen[0].url.path == "/v1/generations/gen-1"
    assert status.video_url == "https://cdn.luma.test/v.mp4"
    assert status.thumbnail_url == "https://cdn.luma.test/t.jpg"


async def test_luma_failure_reason():
    payload = {"id": "gen-1", "state": "failed", "failure_reason": "prompt rejected"}
    async with mock_client(lambda r: httpx.Response(200, json=payload)) as client:
        status = await luma(client).query_status("gen-1")

    assert status.state is JobState.FAILED
    assert status.failure_reason == "prompt rejected"


# ---------- runway ----------

async def test_runway_text_to_video_uses_alpha_model():
    seen = []
    async with mock_client(lambda r: httpx.Response(200, json={"id": "rw-1"}), seen) as client:
        handle = await runway(client).submit(
            GenerationRequest(prompt="a cat", provider="runway", duration=5)
        )

    request = seen[0]
    assert request.url.path == "/v1/text_to_video"
    assert request.headers["X-Runway-Version"] == "2024-11-06"
    assert json.loads(request.content)["model"] == "gen3a_alpha"
    assert handle.model == "gen3a_alpha"
    assert handle.estimated_cost == {"credits": 50, "usd": 0.5}


async def test_runway_image_to_video_uses_turbo_model():
    seen = []
    async with mock_client(lambda r: httpx.Response(200, json={"id": "rw-2"}), seen) as client:
        handle = await runway(client).submit(
            GenerationRequest(prompt="a cat", provider="runway", image_url="https://img.test/a.png", duration=10)
        )

    assert seen[0].url.path == "/v1/image_to_video"
    assert handle.model == "gen3a_turbo"
    assert handle.estimated_cost == {"credits": 50, "usd": 0.5}


def test_runway_cost_table():
    assert calculate_cost(10, "gen3a_alpha") == {"credits": 100, "usd": 1.0}
    assert calculate_cost(5, "gen4_aleph") == {"credits": 75, "usd": 0.75}
    assert calculate_cost(5, "not-a-model")["credits"] == 50


async def test_runway_status_is_case_insensitive():
    payload = {"id": "rw-1", "status": "RUNNING", "progress": 0.42}
    async with mock_client(lambda r: httpx.Response(200, json=payload)) as client:
        status = await runway(client).query_status("rw-1")

    assert status.state is JobState.PROCESSING
    assert status.progress == 42


async def test_runway_integer_fraction_is_full_progress():
    payload = {"id": "rw-1", "status": "RUNNING", "progress": 1}
    async with mock_client(lambda r: httpx.Response(200, json=payload)) as client:
        status = await runway(client).query_status("rw-1")

    assert status.progress == 100


async def test_runway_succeeded_output_list():
    payload = {"id": "rw-1", "status": "SUCCEEDED", "output": ["https://runway.test/out.mp4"]}
    async with mock_client(lambda r: httpx.Response(200, json=payload)) as client:
        status = await runway(client).query_status("rw-1")

    assert status.state is JobState.COMPLETED
    assert status.video_url == "https://runway.test/out.mp4"


# ---------- replicate ----------

async def test_replicate_rejects_text_only_request_without_network_call():
    seen = []
    async with mock_client(lambda r: httpx.Response(201, json={"id": "p-1"}), seen) as client:
        with pytest.raises(UnsupportedRequest):
            await replicate(client).submit(GenerationRequest(prompt="a cat", provider="replicate"))

    assert seen == []


async def test_replicate_submit_payload():
    seen = []
    async with mock_client(lambda r: httpx.Response(201, json={"id": "p-1", "status": "starting"}), seen) as client:
        handle = await replicate(client).submit(
            GenerationRequest(prompt="a cat", provider="replicate", image_url="https://img.test/a.png")
        )

    body = json.loads(seen[0].content)
    assert seen[0].url.path == "/v1/predictions"
    assert body["version"] == "svd-v1"
    assert body["input"]["image"] == "https://img.test/a.png"
    assert body["input"]["motion_bucket_id"] == 127
    assert handle.task_id == "p-1"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("starting", JobState.PENDING),
        ("processing", JobState.PROCESSING),
        ("succeeded", JobState.COMPLETED),
        ("failed", JobState.FAILED),
        ("canceled", JobState.FAILED),
    ],
)
async def test_replicate_state_vocabulary(raw, expected):
    async with mock_client(lambda r: httpx.Response(200, json={"id": "p-1", "status": raw})) as client:
        status = await replicate(client).query_status("p-1")

    assert status.state is expected


async def test_replicate_list_output_takes_last_entry():
    payload = {"id": "p-1", "status": "succeeded", "output": ["https://r.test/a.png", "https://r.test/b.mp4"]}
    async with mock_client(lambda r: httpx.Response(200, json=payload)) as client:
        status = await replicate(client).query_status("p-1")

    assert status.video_url == "https://r.test/b.mp4"


# ---------- transport errors ----------

async def test_http_error_becomes_provider_error():
    async with mock_client(lambda r: httpx.Response(500, json={"detail": "upstream exploded"})) as client:
        with pytest.raises(ProviderError) as exc_info:
            await luma(client).query_status("gen-1")

    assert exc_info.value.provider == "luma"
    assert exc_info.value.status_code == 500
    assert exc_info.value.raw_message == "upstream exploded"


async def test_connection_error_becomes_provider_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_client(refuse) as client:
        with pytest.raises(ProviderError) as exc_info:
            await runway(client).submit(GenerationRequest(prompt="a cat", provider="runway"))

    assert exc_info.value.status_code is None
    assert "connection refused" in exc_info.value.raw_message


async def test_missing_task_id_is_provider_error():
    async with mock_client(lambda r: httpx.Response(200, json={"state": "queued"})) as client:
        with pytest.raises(ProviderError):
            await luma(client).submit(GenerationRequest(prompt="a cat", provider="luma"))


@pytest.mark.parametrize(
    "value, expected",
    [(None, 0), (37, 37), (37.6, 38), (1, 1), (250, 100), (-3, 0), ("n/a", 0)],
)
def test_normalize_progress(value, expected):
    assert normalize_progress(value) == expected


@pytest.mark.parametrize("value, expected", [(0.5, 50), (1, 100), (0, 0), ("0.25", 25), (None, 0)])
def test_normalize_fractional_progress(value, expected):
    assert normalize_progress(value, fraction=True) == expected
