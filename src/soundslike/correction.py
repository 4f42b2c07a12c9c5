"""
Correction phase: one pass of entity-name correction over one document.

A pass runs two fixed steps against a loaded SoundsLikeDatabase:

1. Tier 1 mappings, applied unconditionally.
2. Tier 2 mappings for the classified project that pass confidence and
   scope checks. Skipped entirely when the classification has no project.

The database, detector and replacer live on a CorrectionContext that the
caller creates once per process and passes to every ``correct_text`` call.
"""

import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional

from .collision import CollisionDetector
from .config import RegistryConfig, SoundsLikeConfig, load_config
from .database import SoundsLikeDatabase
from .errors import ConfigurationError
from .models import (
    AppliedMappingStat,
    Classification,
    CorrectionResult,
    CorrectionStats,
    ReplacementResult,
    Tier,
)
from .output import JsonStatsSink
from .registry import EntityRegistry
from .replacer import TextReplacer

logger = logging.getLogger(__name__)

# (result, classification, document_id) -> None
StatsSink = Callable[[CorrectionResult, Classification, str], None]


class CorrectionContext:
    """Process-scoped owner of the database and the stateless helpers."""

    def __init__(
        self,
        config: Optional[SoundsLikeConfig] = None,
        database: Optional[SoundsLikeDatabase] = None,
        stats_sink: Optional[StatsSink] = None,
    ):
        """
        Args:
            config: Settings. Defaults to load_config().
            database: Prebuilt database. If None, one is created over the
                configured registry and loaded on first use.
            stats_sink: Optional receiver of per-pass statistics. When None
                and debug output is configured, a JsonStatsSink is used.

        Raises:
            ConfigurationError: If the configuration is invalid, or a prebuilt
                database uses a different tier 2 threshold
        """
        self.config = (config or load_config()).validate()

        if database is None:
            registry = EntityRegistry(self.config.registry.context_paths)
            database = SoundsLikeDatabase(
                self.config.database,
                registry=registry,
                tier2_min_confidence=self.config.tier2_min_confidence,
            )
        elif database.tier2_min_confidence != self.config.tier2_min_confidence:
            raise ConfigurationError(
                f"Database tier2_min_confidence {database.tier2_min_confidence} does not match "
                f"configured {self.config.tier2_min_confidence}"
            )
        self.database = database

        self.detector = CollisionDetector.from_config(self.config)
        self.replacer = TextReplacer(
            preserve_case=self.config.replacer.preserve_case,
            use_word_boundaries=self.config.replacer.use_word_boundaries,
            case_insensitive=self.config.replacer.case_insensitive,
        )

        if stats_sink is None and self.config.debug.enabled and self.config.debug.stats_dir:
            stats_sink = JsonStatsSink(self.config.debug.stats_dir, database=self.database)
        self.stats_sink = stats_sink

    @classmethod
    def from_paths(
        cls,
        context_paths: list[Path | str],
        config: Optional[SoundsLikeConfig] = None,
    ) -> "CorrectionContext":
        """Create a context reading the registry from the given locations."""
        config = config or load_config()
        registry = RegistryConfig(context_paths=[Path(p).expanduser() for p in context_paths])
        return cls(replace(config, registry=registry))

    def load(self) -> SoundsLikeDatabase:
        """Load the database once; later calls reuse it."""
        return self.database.load()

    async def load_async(self) -> SoundsLikeDatabase:
        return await self.database.load_async()


def _record_applied(stats: CorrectionStats, result: ReplacementResult, tier: Tier) -> None:
    for mapping in result.applied_mappings:
        stats.applied_mappings.append(AppliedMappingStat(
            sounds_like=mapping.sounds_like,
            correct_text=mapping.correct_text,
            tier=int(tier),
            occurrences=result.occurrences_for(mapping),
        ))


def correct_text(
    context: CorrectionContext,
    text: str,
    classification: Optional[Classification] = None,
    document_id: Optional[str] = None,
) -> CorrectionResult:
    """
    Correct entity names in one document.

    Args:
        context: Process-scoped correction context
        text: Transcribed text
        classification: Routing decision used to gate tier 2 mappings
        document_id: Name used by the stats sink for its output

    Returns:
        CorrectionResult with corrected text and statistics
    """
    start = time.perf_counter()
    classification = classification or Classification()

    logger.info("Starting correction pass")
    logger.debug("Classification context: project=%r, confidence=%s",
                 classification.project, classification.confidence)

    database = context.load()

    stats = CorrectionStats(
        project_context=classification.project,
        classification_confidence=classification.confidence,
    )
    result_text = text

    # Step 1: Tier 1 (always safe)
    tier1 = database.get_tier1_mappings()
    stats.tier1_mappings_considered = len(tier1)

    if tier1:
        logger.debug("Applying %d Tier 1 (always safe) mappings", len(tier1))
        tier1_result = context.replacer.apply_replacements(result_text, tier1)
        result_text = tier1_result.text
        stats.tier1_replacements = tier1_result.count
        _record_applied(stats, tier1_result, Tier.ALWAYS_SAFE)

    # Step 2: Tier 2 (project-scoped)
    if classification.project:
        tier2 = database.get_tier2_mappings_for_project(classification.project)
        stats.tier2_mappings_considered = len(tier2)

        applicable = [m for m in tier2 if context.detector.should_apply_tier2(m, classification)]
        logger.debug("%d of %d Tier 2 mappings passed confidence and project checks for %r",
                     len(applicable), len(tier2), classification.project)

        if applicable:
            tier2_result = context.replacer.apply_replacements(result_text, applicable)
            result_text = tier2_result.text
            stats.tier2_replacements = tier2_result.count
            _record_applied(stats, tier2_result, Tier.CONDITIONAL)
    else:
        logger.debug("No project in classification, skipping Tier 2 replacements")

    stats.total_replacements = stats.tier1_replacements + stats.tier2_replacements
    stats.processing_time_ms = (time.perf_counter() - start) * 1000

    logger.info("Correction pass complete: %d replacements (Tier 1: %d, Tier 2: %d) in %.1fms",
                stats.total_replacements, stats.tier1_replacements,
                stats.tier2_replacements, stats.processing_time_ms)

    result = CorrectionResult(text=result_text, stats=stats)

    if context.stats_sink is not None:
        try:
            context.stats_sink(result, classification, document_id or "document")
        except Exception:
            logger.exception("Stats sink failed for %s", document_id or "document")

    return result
