"""Provider adapter contract shared by every video generation provider.

Each adapter translates a canonical GenerationRequest into one provider's wire
format, submits it, and normalizes the provider status payload into a
CanonicalStatus. Adapters hold no state between calls beyond their
configuration and an optional shared httpx client.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from reelforge.errors import ProviderError
from reelforge.models.job import JobState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """Caller-constructed, immutable once submitted."""

    prompt: str
    provider: str
    image_url: str | None = None
    image_end_url: str | None = None
    duration: int = 5
    aspect_ratio: str = "16:9"
    style: str | None = None
    loop: bool = False


@dataclass(frozen=True)
class JobHandle:
    """What a provider returns at submission time."""

    provider: str
    task_id: str
    state: JobState = JobState.PENDING
    model: str | None = None
    estimated_cost: dict[str, float] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class CanonicalStatus:
    """Provider status mapped onto the canonical lifecycle."""

    state: JobState
    raw_state: str
    progress: int = 0
    video_url: str | None = None
    thumbnail_url: str | None = None
    failure_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def map_state(raw_state: str | None, mapping: dict[str, JobState]) -> JobState:
    """Look up a provider state case-insensitively; unmapped states become UNKNOWN."""
    if not raw_state:
        return JobState.UNKNOWN
    return mapping.get(raw_state.lower(), JobState.UNKNOWN)


def normalize_progress(value: Any, *, fraction: bool = False) -> int:
    """Clamp provider progress to 0-100; missing means 0.

    Pass `fraction=True` for providers that report 0-1 regardless of JSON type.
    """
    if value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if fraction:
        number *= 100
    return max(0, min(100, int(round(number))))


class ProviderAdapter(ABC):
    """Capability contract: submit a request, query a task's status."""

    name: str = "unknown"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @abstractmethod
    async def submit(self, request: GenerationRequest) -> JobHandle:
        """Submit a generation request and return the provider task handle."""
        ...

    @abstractmethod
    async def query_status(self, provider_task_id: str) -> CanonicalStatus:
        """Fetch the task's current status in canonical form."""
        ...

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Transport errors and non-2xx responses are raised as ProviderError
        carrying the provider's raw message.
        """
        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)
        own_client = self._http_client is None
        url = f"{self.base_url}{path}"

        try:
            resp = await client.request(method, url, headers=self._headers(), **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raw = _error_text(e.response)
            logger.error("%s API error %s on %s: %s", self.name, e.response.status_code, path, raw)
            raise ProviderError(self.name, raw, status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("%s transport error on %s: %s", self.name, path, e)
            raise ProviderError(self.name, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ProviderError(self.name, f"invalid JSON response: {e}") from e
        finally:
            if own_client:
                await client.aclose()

    def _require_task_id(self, data: dict[str, Any], *keys: str) -> str:
        for key in keys or ("id",):
            task_id = data.get(key)
            if task_id:
                return str(task_id)
        raise ProviderError(self.name, f"no task id in response: {data}")


def _error_text(response: httpx.Response) -> str:
    """Best-effort extraction of the provider's own error message."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("error", "detail", "message", "failure_reason"):
            value = body.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if value:
                return str(value)
    return str(body)
