"""
Sounds-like database.

Aggregates sounds_like mappings from the entity registry (projects, people,
terms), detects collisions and classifies every mapping into a tier:

    Tier 1  unique variant, always safe to apply
    Tier 2  common word or shared by several entities; needs project scope
            and classification confidence
    Tier 3  generic word; never applied automatically

The database is built once and is read-only afterwards. ``load()`` may be
called from many threads; the first caller reads the registry and every other
caller waits on the same future.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from dataclasses import replace
from typing import Iterable, Optional

from .config import DatabaseConfig, check_confidence
from .models import (
    Collision,
    CollisionRisk,
    EntityType,
    SoundsLikeMapping,
    Tier,
)
from .registry import EntityRecord, EntityRegistry

logger = logging.getLogger(__name__)

# Tier 2 bucket for mappings that are not scoped to a project
GENERIC_BUCKET = "_generic"


def build_mappings(entities: Iterable[EntityRecord]) -> list[SoundsLikeMapping]:
    """
    Turn active entities into unclassified mappings, one per sounds_like variant.

    Repeated variants of the same entity collapse into one mapping.
    """
    mappings = []
    seen: set[tuple[EntityType, str, str]] = set()

    for entity in entities:
        if not entity.active:
            logger.debug("Skipping inactive %s: %s", entity.entity_type.value, entity.id)
            continue

        added = 0
        for variant in entity.sounds_like:
            sounds_like = variant.strip().lower()
            if not sounds_like:
                continue

            key = (entity.entity_type, entity.id, sounds_like)
            if key in seen:
                continue
            seen.add(key)

            mappings.append(SoundsLikeMapping(
                sounds_like=sounds_like,
                correct_text=entity.name,
                entity_type=entity.entity_type,
                entity_id=entity.id,
            ))
            added += 1

        if added:
            logger.debug("Loaded %d sounds_like entries for %s: %s",
                         added, entity.entity_type.value, entity.id)

    return mappings


def detect_collisions(mappings: Iterable[SoundsLikeMapping]) -> dict[str, Collision]:
    """Group mappings by lowercase sounds_like and keep groups of two or more."""
    groups: dict[str, list[SoundsLikeMapping]] = {}
    for mapping in mappings:
        groups.setdefault(mapping.sounds_like.lower(), []).append(mapping)

    collisions = {}
    for sounds_like, group in groups.items():
        if len(group) > 1:
            collisions[sounds_like] = Collision(sounds_like=sounds_like, mappings=group)
            logger.debug("Collision detected for %r: %d mappings", sounds_like, len(group))

    return collisions


class SoundsLikeDatabase:
    """Tiered catalog of sounds_like mappings with collision lookup."""

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        registry: Optional[EntityRegistry] = None,
        tier2_min_confidence: float = 0.6,
    ):
        """
        Args:
            config: Tier and collision settings
            registry: Source of entity records. If None, the default
                registry location is used.
            tier2_min_confidence: Threshold stamped on project-scoped tier 2
                mappings

        Raises:
            ConfigurationError: If tier2_min_confidence is outside [0, 1]
        """
        self.config = config or DatabaseConfig()
        self.registry = registry
        self.tier2_min_confidence = check_confidence("tier2_min_confidence", tier2_min_confidence)

        self.common_terms: frozenset[str] = frozenset(t.lower() for t in self.config.common_terms)
        self.generic_terms: frozenset[str] = frozenset(t.lower() for t in self.config.generic_terms)

        self.mappings: list[SoundsLikeMapping] = []
        self.tier1: list[SoundsLikeMapping] = []
        self.tier2: dict[str, list[SoundsLikeMapping]] = {}
        self.tier3: list[SoundsLikeMapping] = []
        self.collisions: dict[str, Collision] = {}
        self._by_sounds_like: dict[str, list[SoundsLikeMapping]] = {}

        self._load_lock = threading.Lock()
        self._load_future: Optional[Future] = None

    @classmethod
    def from_entities(
        cls,
        entities: Iterable[EntityRecord],
        config: Optional[DatabaseConfig] = None,
        tier2_min_confidence: float = 0.6,
    ) -> "SoundsLikeDatabase":
        """Build a loaded database from in-memory entity records."""
        database = cls(config, tier2_min_confidence=tier2_min_confidence)
        future: Future = Future()
        database._load_future = future
        database._build(build_mappings(entities))
        future.set_result(database)
        return database

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        future = self._load_future
        return future is not None and future.done()

    def load(self) -> "SoundsLikeDatabase":
        """
        Load all sounds_like mappings. Idempotent.

        Only the first caller reads the registry; concurrent callers block on
        the same in-flight future.
        """
        with self._load_lock:
            future = self._load_future
            owner = future is None
            if owner:
                future = self._load_future = Future()

        if owner:
            try:
                try:
                    mappings = self._read_mappings()
                except Exception:
                    logger.exception("Failed to read sounds_like mappings, continuing without corrections")
                    mappings = []
                self._build(mappings)
            except BaseException as e:
                future.set_exception(e)
                raise
            future.set_result(self)

        return future.result()

    async def load_async(self) -> "SoundsLikeDatabase":
        """Load from an asyncio host without blocking the event loop."""
        future = self._load_future
        if future is not None:
            return await asyncio.wrap_future(future)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.load)

    def _read_mappings(self) -> list[SoundsLikeMapping]:
        """Read entities from the registry; unreadable sources yield nothing."""
        logger.info("Loading sounds_like database")

        registry = self.registry if self.registry is not None else EntityRegistry()
        mappings = build_mappings(registry.entities())

        logger.info("Loaded %d sounds_like mappings from registry", len(mappings))
        return mappings

    def _build(self, mappings: list[SoundsLikeMapping]) -> None:
        """Detect collisions, classify, and partition by tier."""
        if self.config.detect_collisions:
            self.collisions = detect_collisions(mappings)
            logger.info("Detected %d collisions in sounds_like mappings", len(self.collisions))
        else:
            self.collisions = {}

        self.mappings = [self._classify(m) for m in mappings]
        self._partition(self.mappings)

        self._by_sounds_like = {}
        for mapping in self.mappings:
            self._by_sounds_like.setdefault(mapping.sounds_like.lower(), []).append(mapping)

        # Collision groups must hold the classified mappings
        for collision in self.collisions.values():
            collision.mappings = list(self._by_sounds_like[collision.sounds_like])

        logger.info("Sounds_like database loaded: %d total mappings (%s)",
                    len(self.mappings), self._format_summary())

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def classify_tier(self, mapping: SoundsLikeMapping) -> Tier:
        """Classify a mapping against the loaded collision set."""
        sounds_like = (getattr(mapping, "sounds_like", None) or "").lower()
        if not sounds_like:
            return Tier.AMBIGUOUS

        if sounds_like in self.generic_terms:
            return Tier.AMBIGUOUS

        if sounds_like in self.common_terms or sounds_like in self.collisions:
            return Tier.CONDITIONAL

        return Tier.ALWAYS_SAFE

    def _collision_risk(self, sounds_like: str, tier: Tier) -> CollisionRisk:
        if sounds_like in self.collisions:
            return CollisionRisk.HIGH
        if sounds_like in self.common_terms:
            return CollisionRisk.MEDIUM
        if tier == Tier.CONDITIONAL:
            return CollisionRisk.LOW
        return CollisionRisk.NONE

    def _classify(self, mapping: SoundsLikeMapping) -> SoundsLikeMapping:
        tier = self.classify_tier(mapping)
        risk = self._collision_risk(mapping.sounds_like.lower(), tier)

        changes = {"tier": tier, "collision_risk": risk}
        if tier == Tier.CONDITIONAL and mapping.entity_type == EntityType.PROJECT:
            changes["scoped_to_projects"] = (mapping.entity_id,)
            if mapping.min_confidence is None:
                changes["min_confidence"] = self.tier2_min_confidence

        classified = replace(mapping, **changes)
        logger.debug("Classified %s as Tier %d (risk: %s)",
                     classified.describe(), tier, risk.value)
        return classified

    def _partition(self, mappings: list[SoundsLikeMapping]) -> None:
        self.tier1 = []
        self.tier2 = {}
        self.tier3 = []

        for mapping in mappings:
            if mapping.tier == Tier.ALWAYS_SAFE:
                self.tier1.append(mapping)
            elif mapping.tier == Tier.CONDITIONAL:
                key = mapping.entity_id if mapping.entity_type == EntityType.PROJECT else GENERIC_BUCKET
                self.tier2.setdefault(key, []).append(mapping)
            else:
                self.tier3.append(mapping)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_tier1_mappings(self) -> list[SoundsLikeMapping]:
        """All tier 1 (always safe) mappings."""
        return list(self.tier1)

    def get_tier2_mappings_for_project(self, project_id: str) -> list[SoundsLikeMapping]:
        """Tier 2 mappings scoped to a project, plus the generic tier 2 bucket."""
        return self.tier2.get(project_id, []) + self.tier2.get(GENERIC_BUCKET, [])

    def has_collision(self, sounds_like: str) -> bool:
        return sounds_like.lower() in self.collisions

    def get_collision(self, sounds_like: str) -> Optional[Collision]:
        return self.collisions.get(sounds_like.lower())

    def get_all_collisions(self) -> list[Collision]:
        return list(self.collisions.values())

    def get_mappings(self, sounds_like: str) -> list[SoundsLikeMapping]:
        """Every mapping for one sounds_like value, whatever its tier."""
        return list(self._by_sounds_like.get(sounds_like.strip().lower(), []))

    def summary(self) -> dict[str, int]:
        """Mapping counts per tier."""
        return {
            "total": len(self.mappings),
            "tier1": len(self.tier1),
            "tier2": sum(len(bucket) for bucket in self.tier2.values()),
            "tier3": len(self.tier3),
            "collisions": len(self.collisions),
        }

    def _format_summary(self) -> str:
        s = self.summary()
        return f"Tier 1={s['tier1']}, Tier 2={s['tier2']}, Tier 3={s['tier3']}"
