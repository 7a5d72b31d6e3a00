"""Acquisition orchestrator: run strategies in order until one yields a valid PDF.

Strategies run strictly one after another against the same page, each inside
its own time budget. The first ``Success`` that passes the validator is written
to the resolved path and ends the run; anything else is logged and the next
strategy is tried. Nothing is written unless validation passed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError  # type: ignore

from .acquire_config import DEFAULT_CONFIG, AcquireConfig
from .models import (
    AcquisitionRequest,
    AcquisitionResult,
    ArtifactRecord,
    AttemptRecord,
    Failed,
    FailureKind,
    NotApplicable,
    StrategyName,
    StrategyOutcome,
    Success,
)
from .paths import resolve, write_atomic
from .session_http import SessionHttpClient
from .strategies import STRATEGIES, StrategyContext, StrategyFn
from .validator import describe_rejection, validate

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_NOT_APPLICABLE = "not_applicable"
STATUS_FAILED = "failed"


class Acquirer:
    """Sequences the acquisition strategies for one page at a time."""

    def __init__(
        self,
        config: AcquireConfig = DEFAULT_CONFIG,
        *,
        http: Optional[SessionHttpClient] = None,
        strategies: Iterable[Tuple[StrategyName, StrategyFn]] = STRATEGIES,
    ) -> None:
        self.config = config
        self.context = StrategyContext(
            config=config,
            http=http or SessionHttpClient(timeout=config.http_timeout, max_redirects=config.max_redirects),
        )
        self.strategies: Tuple[Tuple[StrategyName, StrategyFn], ...] = tuple(strategies)
        self._budgets: Dict[StrategyName, float] = {
            StrategyName.DIRECT_REPLAY: config.direct_replay_budget,
            StrategyName.NATIVE_EVENT: config.native_event_budget,
            StrategyName.VIEWER: config.viewer_budget,
            StrategyName.RESOURCE_URL: config.resource_url_budget,
            StrategyName.HTTP_REPLICATION: config.http_replication_budget,
        }

    def target_path(self, request: AcquisitionRequest) -> Path:
        return resolve(
            request.destination_root,
            request.classification_tags,
            request.source_identifier,
            today=self.config.clock(),
            extension=self.config.extension,
            create=False,
        )

    async def acquire(self, page, request: AcquisitionRequest) -> AcquisitionResult:
        path = self.target_path(request)
        attempts: List[AttemptRecord] = []
        logger.info("Start download: %s", path.name)
        try:
            await self._wait_for_form(page)
            for name, strategy in self.strategies:
                started = time.monotonic()
                outcome = await self._run_strategy(name, strategy, page, request)
                elapsed_ms = int((time.monotonic() - started) * 1000)

                if isinstance(outcome, Success):
                    if validate(outcome.data, outcome.content_type, mime_type=self.config.mime_type, magic=self.config.magic):
                        size = await asyncio.to_thread(write_atomic, path, outcome.data)
                        record = ArtifactRecord(path=path, size_bytes=size, source_strategy=name)
                        attempts.append(AttemptRecord(name, STATUS_SUCCESS, elapsed_ms=elapsed_ms))
                        logger.info("Saved via %s: %s (%d bytes)", name.value, path, size)
                        return AcquisitionResult(ok=True, path=path, record=record, attempts=tuple(attempts))
                    outcome = Failed(FailureKind.VALIDATION_FAILED, describe_rejection(outcome.data, outcome.content_type))

                attempts.append(self._record(name, outcome, elapsed_ms))
        except Exception as exc:
            logger.error("Download aborted for %s: %s", path.name, exc)
            return AcquisitionResult(ok=False, path=path, attempts=tuple(attempts), error=f"{type(exc).__name__}: {exc}")

        logger.error("Download PDF failed: all %d strategies exhausted for %s", len(self.strategies), path.name)
        return AcquisitionResult(ok=False, path=path, attempts=tuple(attempts), error="all strategies exhausted")

    async def _wait_for_form(self, page) -> None:
        try:
            await page.locator(self.config.form_selector).wait_for(
                state="visible",
                timeout=self.config.form_visible_timeout * 1000,
            )
        except PlaywrightError as exc:
            logger.warning("Download form %s not visible: %s", self.config.form_selector, exc)

    async def _run_strategy(
        self,
        name: StrategyName,
        strategy: StrategyFn,
        page,
        request: AcquisitionRequest,
    ) -> StrategyOutcome:
        budget = self._budgets.get(name)
        logger.debug("Trying %s (budget %ss)", name.value, budget)
        try:
            return await asyncio.wait_for(strategy(page, request, self.context), timeout=budget)
        except asyncio.TimeoutError:
            return Failed(FailureKind.TIMEOUT, f"exceeded {budget}s budget")

    @staticmethod
    def _record(name: StrategyName, outcome: StrategyOutcome, elapsed_ms: int) -> AttemptRecord:
        if isinstance(outcome, NotApplicable):
            logger.debug("%s not applicable: %s", name.value, outcome.reason)
            return AttemptRecord(name, STATUS_NOT_APPLICABLE, detail=outcome.reason, elapsed_ms=elapsed_ms)
        if not isinstance(outcome, Failed):
            raise TypeError(f"{name.value} returned {type(outcome).__name__}, expected an outcome variant")
        logger.warning("%s failed (%s): %s", name.value, outcome.kind.value, outcome.reason)
        return AttemptRecord(name, STATUS_FAILED, detail=outcome.reason, kind=outcome.kind, elapsed_ms=elapsed_ms)


async def acquire(page, request: AcquisitionRequest, config: AcquireConfig = DEFAULT_CONFIG) -> AcquisitionResult:
    """Convenience wrapper around ``Acquirer(config).acquire``."""

    return await Acquirer(config).acquire(page, request)


__all__ = [
    "Acquirer",
    "STATUS_FAILED",
    "STATUS_NOT_APPLICABLE",
    "STATUS_SUCCESS",
    "acquire",
]
