from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from narrative_radar.core.config import ADAPTER_TIMEOUT_SECONDS, DEFAULT_DAY_RANGE
from narrative_radar.core.exceptions import ValidationError
from narrative_radar.domain.models import Narrative, RawRecord, Signal, SignalSet, SignalStats
from narrative_radar.services.cluster_svc import ClusterService
from narrative_radar.services.ideas_svc import IdeaService
from narrative_radar.services.scoring_svc import score_narratives
from narrative_radar.services.signal_svc import build_signal_set, get_signal_stats
from narrative_radar.storage.snapshot_storage import SnapshotStorage

logger = logging.getLogger(__name__)


class SourceAdapter(Protocol):
    """A named source that yields raw records for the last ``day_range`` days."""

    name: str

    async def collect(self, day_range: int) -> list[RawRecord]: ...


@dataclass
class CollectionReport:
    records: list[RawRecord] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


@dataclass
class AnalysisResult:
    narratives: list[Narrative] = field(default_factory=list)
    stats: SignalStats | None = None
    signal_count: int = 0


@dataclass
class PipelineRunResult:
    signal_set: SignalSet
    analysis: AnalysisResult


async def collect_raw_records(
    adapters: Sequence[SourceAdapter],
    day_range: int = DEFAULT_DAY_RANGE,
    timeout: float = ADAPTER_TIMEOUT_SECONDS,
) -> CollectionReport:
    """
    Run every adapter concurrently and wait for all of them to settle.

    Successful results are concatenated in adapter declaration order. A
    failing, timed-out or misbehaving adapter contributes nothing and is
    recorded in ``failures``; this never raises on adapter failure.
    """
    if day_range < 1:
        raise ValidationError(f"day_range must be a positive integer, got {day_range}")
    logger.info("Starting collection from %d sources (%d days)", len(adapters), day_range)
    results = await asyncio.gather(
        *(asyncio.wait_for(adapter.collect(day_range), timeout=timeout) for adapter in adapters),
        return_exceptions=True,
    )

    report = CollectionReport()
    for adapter, result in zip(adapters, results):
        if isinstance(result, asyncio.TimeoutError):
            reason = f"timed out after {timeout:.0f}s"
        elif isinstance(result, BaseException):
            reason = str(result) or type(result).__name__
        elif not isinstance(result, list):
            reason = f"returned {type(result).__name__}, expected list"
        else:
            logger.info("Source %s: %d records", adapter.name, len(result))
            report.records.extend(result)
            continue
        logger.warning("Source %s failed: %s", adapter.name, reason)
        report.failures[adapter.name] = reason

    logger.info(
        "Collection complete: %d records, %d/%d sources failed",
        len(report.records), len(report.failures), len(adapters),
    )
    return report


class PipelineOrchestrator:
    """
    Runs collection and analysis end to end.

    Collection: adapters -> normalizer -> signals snapshot.
    Analysis: classifier -> scoring -> idea enrichment -> narratives snapshot.
    Storage failures propagate to the caller; classifier and enrichment
    failures degrade to fewer narratives or ideas.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        cluster_service: ClusterService,
        idea_service: IdeaService,
        storage: SnapshotStorage,
        adapter_timeout: float = ADAPTER_TIMEOUT_SECONDS,
    ) -> None:
        self.adapters = list(adapters)
        self.cluster_service = cluster_service
        self.idea_service = idea_service
        self.storage = storage
        self.adapter_timeout = adapter_timeout

    async def run_collection(self, day_range: int = DEFAULT_DAY_RANGE) -> SignalSet:
        started = time.monotonic()
        report = await collect_raw_records(self.adapters, day_range, timeout=self.adapter_timeout)
        signal_set = build_signal_set(report.records)
        path = self.storage.save_signal_set(signal_set, {"day_range": day_range, "stats": signal_set.stats})
        logger.info(
            "Collection saved to %s: %d signals in %.1fs",
            path.name, len(signal_set.signals), time.monotonic() - started,
        )
        return signal_set

    async def run_analysis(self, signals: list[Signal] | None = None, day_range: int | None = None) -> AnalysisResult:
        """
        Analyze ``signals``, or the latest signal snapshot when none are given.

        Without an explicit ``day_range`` the snapshot's own window is used.
        """
        started = time.monotonic()
        if signals is None:
            snapshot = self.storage.load_latest_signals()
            if snapshot is None:
                logger.warning("No signal snapshot found; run a collection first")
                return AnalysisResult()
            signals = snapshot.signals
            if day_range is None:
                day_range = snapshot.day_range or None
        if day_range is None:
            day_range = DEFAULT_DAY_RANGE
        elif day_range < 1:
            raise ValidationError(f"day_range must be a positive integer, got {day_range}")

        stats = get_signal_stats(signals)
        candidates = await self.cluster_service.cluster_narratives(signals, day_range)
        scored = score_narratives(candidates, signals)
        enriched = await self.idea_service.generate_build_ideas(scored)

        path = self.storage.save_narrative_set(enriched, stats)
        logger.info(
            "Analysis saved to %s: %d narratives from %d signals in %.1fs",
            path.name, len(enriched), len(signals), time.monotonic() - started,
        )
        return AnalysisResult(narratives=enriched, stats=stats, signal_count=len(signals))

    async def run_full(self, day_range: int = DEFAULT_DAY_RANGE) -> PipelineRunResult:
        logger.info("Starting full pipeline run (%d days)", day_range)
        signal_set = await self.run_collection(day_range)
        analysis = await self.run_analysis(signal_set.signals, day_range)
        return PipelineRunResult(signal_set=signal_set, analysis=analysis)
