"""Data models for soundslike."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


class EntityType(Enum):
    """Kind of registry entity a mapping belongs to."""
    PROJECT = "project"
    PERSON = "person"
    TERM = "term"


class Tier(IntEnum):
    """Application policy for a mapping."""
    ALWAYS_SAFE = 1      # Unique, applied unconditionally
    CONDITIONAL = 2      # Needs project scope and confidence
    AMBIGUOUS = 3        # Never applied automatically


class CollisionRisk(Enum):
    """Informational risk level derived alongside the tier."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CapitalizationHint(Enum):
    """Advisory signal read from how a token is capitalized in context."""
    PROPER_NOUN = "proper-noun"
    COMMON_TERM = "common-term"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SoundsLikeMapping:
    """
    A single phonetic correction candidate.

    ``tier`` and ``collision_risk`` stay None until the database classifies
    the mapping against the whole catalog.
    """

    sounds_like: str             # Lowercased phrase as typically mis-heard
    correct_text: str            # Canonical spelling
    entity_type: EntityType
    entity_id: str

    tier: Optional[Tier] = None
    collision_risk: Optional[CollisionRisk] = None
    scoped_to_projects: Optional[tuple[str, ...]] = None
    min_confidence: Optional[float] = None

    def describe(self) -> str:
        return (
            f"{self.sounds_like!r} -> {self.correct_text!r} "
            f"({self.entity_type.value}:{self.entity_id})"
        )


@dataclass
class Collision:
    """Several mappings sharing one normalized sounds_like value."""

    sounds_like: str
    mappings: list[SoundsLikeMapping] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.mappings)

    def to_dict(self) -> dict:
        return {
            "sounds_like": self.sounds_like,
            "count": self.count,
            "mappings": [mapping_to_dict(m) for m in self.mappings],
        }


@dataclass
class Classification:
    """
    Routing decision supplied by an upstream classifier.

    Only ``project`` and ``confidence`` drive tier 2 gating. Anything else the
    classifier reports is kept in ``extra``.
    """

    project: Optional[str] = None
    confidence: Optional[float] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Classification":
        """Build from a loose dict, moving unknown keys into ``extra``."""
        data = dict(data or {})
        project = data.pop("project", None)
        confidence = data.pop("confidence", None)
        return cls(
            project=project or None,
            confidence=float(confidence) if confidence is not None else None,
            extra=data,
        )

    def to_dict(self) -> dict:
        return {"project": self.project, "confidence": self.confidence}


@dataclass
class ReplacementOccurrence:
    """One substituted span."""

    original: str
    replacement: str
    position: int
    mapping: SoundsLikeMapping


@dataclass
class ReplacementResult:
    """Outcome of applying one or more mappings to a text."""

    text: str
    count: int = 0
    occurrences: list[ReplacementOccurrence] = field(default_factory=list)
    applied_mappings: list[SoundsLikeMapping] = field(default_factory=list)

    def occurrences_for(self, mapping: SoundsLikeMapping) -> int:
        return sum(1 for o in self.occurrences if o.mapping == mapping)


@dataclass
class CollisionContext:
    """Input to CollisionDetector.decide_replacement."""

    classification: Classification
    sounds_like: str
    available_mappings: list[SoundsLikeMapping] = field(default_factory=list)
    surrounding_text: Optional[str] = None


@dataclass
class ReplacementDecision:
    """Whether to replace a token, and with which mapping."""

    should_replace: bool
    reason: str
    confidence: float
    mapping: Optional[SoundsLikeMapping] = None

    def to_dict(self) -> dict:
        return {
            "should_replace": self.should_replace,
            "reason": self.reason,
            "confidence": self.confidence,
            "mapping": mapping_to_dict(self.mapping) if self.mapping else None,
        }


@dataclass
class AppliedMappingStat:
    """Per-mapping detail recorded by a correction pass."""

    sounds_like: str
    correct_text: str
    tier: int
    occurrences: int


@dataclass
class CorrectionStats:
    """Aggregate statistics for one correction pass."""

    tier1_replacements: int = 0
    tier2_replacements: int = 0
    total_replacements: int = 0
    tier1_mappings_considered: int = 0
    tier2_mappings_considered: int = 0
    project_context: Optional[str] = None
    classification_confidence: Optional[float] = None
    processing_time_ms: float = 0.0
    applied_mappings: list[AppliedMappingStat] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tier1_replacements": self.tier1_replacements,
            "tier2_replacements": self.tier2_replacements,
            "total_replacements": self.total_replacements,
            "tier1_mappings_considered": self.tier1_mappings_considered,
            "tier2_mappings_considered": self.tier2_mappings_considered,
            "project_context": self.project_context,
            "classification_confidence": self.classification_confidence,
            "processing_time_ms": round(self.processing_time_ms, 3),
            "applied_mappings": [
                {
                    "sounds_like": a.sounds_like,
                    "correct_text": a.correct_text,
                    "tier": a.tier,
                    "occurrences": a.occurrences,
                }
                for a in self.applied_mappings
            ],
        }


@dataclass
class CorrectionResult:
    """Corrected text plus the statistics of the pass that produced it."""

    text: str
    stats: CorrectionStats

    @property
    def replacements_made(self) -> bool:
        return self.stats.total_replacements > 0

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "replacements_made": self.replacements_made,
            "stats": self.stats.to_dict(),
        }


def mapping_to_dict(mapping: SoundsLikeMapping) -> dict:
    """Convert a mapping to a JSON-ready dict."""
    return {
        "sounds_like": mapping.sounds_like,
        "correct_text": mapping.correct_text,
        "entity_type": mapping.entity_type.value,
        "entity_id": mapping.entity_id,
        "tier": int(mapping.tier) if mapping.tier is not None else None,
        "collision_risk": mapping.collision_risk.value if mapping.collision_risk else None,
        "scoped_to_projects": list(mapping.scoped_to_projects) if mapping.scoped_to_projects else None,
        "min_confidence": mapping.min_confidence,
    }
