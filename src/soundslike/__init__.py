"""soundslike - Phonetic entity-name correction for transcripts."""

__version__ = "0.1.0"

from .models import (
    Classification,
    Collision,
    CorrectionResult,
    CorrectionStats,
    EntityType,
    ReplacementDecision,
    SoundsLikeMapping,
    Tier,
)
from .config import SoundsLikeConfig, load_config
from .database import SoundsLikeDatabase
from .collision import CollisionDetector
from .replacer import TextReplacer
from .correction import CorrectionContext, correct_text

__all__ = [
    "Classification",
    "Collision",
    "CorrectionResult",
    "CorrectionStats",
    "EntityType",
    "ReplacementDecision",
    "SoundsLikeMapping",
    "Tier",
    "SoundsLikeConfig",
    "load_config",
    "SoundsLikeDatabase",
    "CollisionDetector",
    "TextReplacer",
    "CorrectionContext",
    "correct_text",
]
