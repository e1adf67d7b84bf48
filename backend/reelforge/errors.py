"""Error taxonomy for generation dispatch, reconciliation and delivery."""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base class for all orchestrator errors."""


class UnknownProvider(GenerationError):
    """A provider name is not registered. Configuration defect, fatal to the request."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown provider: {name}")
        self.name = name


class UnsupportedRequest(GenerationError):
    """The request cannot be fulfilled by the target provider (e.g. missing seed image)."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderError(GenerationError):
    """Transport failure or provider-side rejection. Never retried internally."""

    def __init__(
        self,
        provider: str,
        raw_message: str,
        status_code: int | None = None,
    ) -> None:
        detail = f" (HTTP {status_code})" if status_code else ""
        super().__init__(f"{provider} request failed{detail}: {raw_message}")
        self.provider = provider
        self.raw_message = raw_message
        self.status_code = status_code


class DispatchFailed(GenerationError):
    """At least one submission of a variation group failed; nothing was persisted."""

    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = outcomes
        self.failures = [o for o in outcomes if o.error is not None]
        self.cause: Exception | None = self.failures[0].error if self.failures else None
        summary = "; ".join(
            f"variation {o.variation_index} ({o.provider}): {o.error}" for o in self.failures
        )
        super().__init__(f"Dispatch failed: {summary}")


class MigrationFailed(GenerationError):
    """Copying a provider artifact into durable storage failed. Non-fatal for the job."""

    def __init__(self, job_id: str, reason: str) -> None:
        super().__init__(f"Migration failed for job {job_id}: {reason}")
        self.job_id = job_id
        self.reason = reason


class InsufficientFunds(GenerationError):
    """Requester balance does not cover the dispatch cost."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"Insufficient credits: required {required}, available {available}")
        self.required = required
        self.available = available


class ArtifactNotReady(GenerationError):
    """No durable or provider-hosted artifact exists for the job yet."""
