"""Generation orchestrator — fans one prompt out into three provider jobs.

Dispatch:
1. Build three requests from a fixed variation policy (prompt augmentation
   + provider per variation)
2. Submit all three concurrently, each with its own timeout
3. Join; any failure aborts the whole group and nothing is persisted
4. Record the group and its three pending jobs in one transaction

Usage:
    orchestrator = Orchestrator(registry, store, cost_per_scene=10)
    group = await orchestrator.dispatch("a cat on a skateboard", DispatchParams(), user_id)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from reelforge.errors import DispatchFailed, GenerationError, ProviderError
from reelforge.models.job import JobGroup
from reelforge.services.job_store import JobStore, NewJob
from reelforge.services.provider_registry import ProviderRegistry
from reelforge.services.providers import GenerationRequest, JobHandle, ProviderAdapter

logger = logging.getLogger(__name__)

PRIMARY_PROVIDER = "luma"
SECONDARY_PROVIDER = "runway"

DEFAULT_STYLE = "High contrast, dramatic shadows, stylized aesthetic."


@dataclass(frozen=True)
class VariationStrategy:
    index: int
    name: str
    provider: str
    suffix: str


# Fixed policy: not caller-controlled, except that a caller style replaces
# the stylized suffix verbatim.
VARIATION_POLICY: tuple[VariationStrategy, ...] = (
    VariationStrategy(
        0, "cinematic", PRIMARY_PROVIDER,
        "Cinematic lighting, professional color grading, 24fps film look.",
    ),
    VariationStrategy(1, "stylized", SECONDARY_PROVIDER, DEFAULT_STYLE),
    VariationStrategy(
        2, "wide_angle", PRIMARY_PROVIDER,
        "Wide angle shot, atmospheric depth, slight camera movement.",
    ),
)


@dataclass(frozen=True)
class DispatchParams:
    """Caller parameters shared by all three variations."""

    image_url: str | None = None
    style: str | None = None
    duration: int = 5
    aspect_ratio: str = "16:9"


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of one submission: a handle or an error, never both."""

    variation_index: int
    provider: str
    request: GenerationRequest
    handle: JobHandle | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.handle is not None


def build_requests(prompt: str, params: DispatchParams) -> list[GenerationRequest]:
    """Apply the variation policy to one prompt."""
    requests = []
    for strategy in VARIATION_POLICY:
        suffix = strategy.suffix
        if strategy.name == "stylized" and params.style:
            suffix = params.style
        requests.append(GenerationRequest(
            prompt=f"{prompt}. {suffix}",
            provider=strategy.provider,
            image_url=params.image_url,
            duration=params.duration,
            aspect_ratio=params.aspect_ratio,
            style=params.style,
        ))
    return requests


# Submissions outlive an abandoned caller; keep them referenced until done.
_inflight: set[asyncio.Task] = set()


class Orchestrator:
    def __init__(
        self,
        registry: ProviderRegistry,
        store: JobStore,
        *,
        cost_per_scene: int = 10,
        provider_timeout: float = 30.0,
    ) -> None:
        self.registry = registry
        self.store = store
        self.cost_per_scene = cost_per_scene
        self.provider_timeout = provider_timeout

    @property
    def group_cost(self) -> int:
        return self.cost_per_scene * len(VARIATION_POLICY)

    async def dispatch(self, prompt: str, params: DispatchParams, requester_id: str) -> JobGroup:
        """Submit three variations; persist all three or none.

        Raises UnknownProvider before any network call if the policy names an
        unregistered provider, DispatchFailed if any submission fails.
        """
        requests = build_requests(prompt, params)
        adapters = [self.registry.resolve(r.provider) for r in requests]

        outcomes = await self.submit_all(list(zip(adapters, requests)))

        failures = [o for o in outcomes if not o.ok]
        if failures:
            orphans = [f"{o.provider}:{o.handle.task_id}" for o in outcomes if o.ok]
            if orphans:
                logger.warning(
                    "Dispatch for user %s aborted; provider tasks left running: %s",
                    requester_id, ", ".join(orphans),
                )
            raise DispatchFailed(outcomes)

        strategies = {s.index: s for s in VARIATION_POLICY}
        new_jobs = [
            NewJob(
                variation_index=o.variation_index,
                provider=o.provider,
                provider_task_id=o.handle.task_id,
                prompt=o.request.prompt,
                cost_units=self.cost_per_scene,
                provider_meta={
                    "strategy": strategies[o.variation_index].name,
                    "model": o.handle.model,
                    "estimated_cost": o.handle.estimated_cost,
                    "submitted_at": o.handle.created_at.isoformat(),
                },
            )
            for o in outcomes
        ]
        return await self.store.create_job_group(requester_id, prompt, new_jobs)

    async def submit_all(
        self, pairs: list[tuple[ProviderAdapter, GenerationRequest]]
    ) -> list[SubmissionOutcome]:
        """Run every submission as an independent task and join on all of them."""
        tasks = [
            asyncio.create_task(self._submit_one(index, adapter, request))
            for index, (adapter, request) in enumerate(pairs)
        ]
        for task in tasks:
            _inflight.add(task)
            task.add_done_callback(_inflight.discard)

        # shield: cancelling the caller must not cancel provider-side submissions
        return list(await asyncio.gather(*(asyncio.shield(t) for t in tasks)))

    async def _submit_one(
        self, index: int, adapter: ProviderAdapter, request: GenerationRequest
    ) -> SubmissionOutcome:
        outcome = SubmissionOutcome(variation_index=index, provider=adapter.name, request=request)
        try:
            handle = await asyncio.wait_for(adapter.submit(request), timeout=self.provider_timeout)
        except GenerationError as e:
            logger.warning("Variation %d on %s rejected: %s", index, adapter.name, e)
            return replace(outcome, error=e)
        except asyncio.TimeoutError:
            logger.warning("Variation %d on %s timed out after %.0fs", index, adapter.name, self.provider_timeout)
            return replace(
                outcome, error=ProviderError(adapter.name, f"no response within {self.provider_timeout}s")
            )
        except Exception as e:
            logger.error("Variation %d on %s crashed: %s", index, adapter.name, e, exc_info=True)
            return replace(outcome, error=ProviderError(adapter.name, str(e)))

        logger.info("Variation %d submitted to %s: task=%s", index, adapter.name, handle.task_id)
        return replace(outcome, handle=handle)
