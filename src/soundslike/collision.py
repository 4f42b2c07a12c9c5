"""
Collision detection and resolution.

Decides when a tier 2 mapping may be applied given a classification, and
which mapping (if any) to use when several entities share a sounds_like
value. Capitalization in the surrounding text is an advisory signal only:
it can hold back an undecided replacement but never force one.
"""

import logging
import re
import warnings
from typing import Optional

from .config import SoundsLikeConfig, check_confidence
from .errors import AmbiguousCollisionWarning
from .models import (
    CapitalizationHint,
    Classification,
    Collision,
    CollisionContext,
    ReplacementDecision,
    SoundsLikeMapping,
    Tier,
)

logger = logging.getLogger(__name__)

# Text before a sentence-initial word: nothing, or a terminator plus whitespace
_SENTENCE_END = re.compile(r"[.!?]\s*$")


class CollisionDetector:
    """Stateless policy for tier 2 gating and collision resolution."""

    def __init__(self, tier2_min_confidence: float = 0.6, use_capitalization_hints: bool = True):
        """
        Args:
            tier2_min_confidence: Confidence needed for tier 2 mappings that
                carry no threshold of their own
            use_capitalization_hints: Consult capitalization when a collision
                cannot be resolved

        Raises:
            ConfigurationError: If tier2_min_confidence is outside [0, 1]
        """
        self.tier2_min_confidence = check_confidence("tier2_min_confidence", tier2_min_confidence)
        self.use_capitalization_hints = use_capitalization_hints

    @classmethod
    def from_config(cls, config: SoundsLikeConfig) -> "CollisionDetector":
        return cls(
            tier2_min_confidence=config.tier2_min_confidence,
            use_capitalization_hints=config.detector.use_capitalization_hints,
        )

    def should_apply_tier2(self, mapping: SoundsLikeMapping, classification: Classification) -> bool:
        """Check confidence and project scope for a tier 2 mapping."""
        if mapping.tier != Tier.CONDITIONAL:
            return False

        confidence = classification.confidence
        min_confidence = mapping.min_confidence if mapping.min_confidence is not None else self.tier2_min_confidence

        if confidence is None:
            logger.debug("Skipping Tier 2 replacement for %r: no confidence in classification",
                         mapping.sounds_like)
            return False

        if confidence < min_confidence:
            logger.debug("Skipping Tier 2 replacement for %r: confidence %s < %s",
                         mapping.sounds_like, confidence, min_confidence)
            return False

        if mapping.scoped_to_projects:
            project = classification.project
            if not project:
                logger.debug("Skipping Tier 2 replacement for %r: no project in classification",
                             mapping.sounds_like)
                return False

            if project not in mapping.scoped_to_projects:
                logger.debug("Skipping Tier 2 replacement for %r: project %r not in scope [%s]",
                             mapping.sounds_like, project, ", ".join(mapping.scoped_to_projects))
                return False

        logger.debug("Applying Tier 2 replacement %s (project: %s, confidence: %s)",
                     mapping.describe(), classification.project, confidence)
        return True

    def resolve_collision(
        self,
        collision: Collision,
        classification: Classification,
    ) -> Optional[SoundsLikeMapping]:
        """
        Pick at most one mapping for a collision.

        A single tier 1 mapping always wins. Several tier 1 mappings are a
        registry data problem and resolve to nothing. Otherwise exactly one
        qualifying tier 2 mapping is needed.
        """
        logger.debug("Resolving collision for %r (%d candidates)", collision.sounds_like, collision.count)

        tier1 = [m for m in collision.mappings if m.tier == Tier.ALWAYS_SAFE]
        tier2 = [
            m for m in collision.mappings
            if m.tier == Tier.CONDITIONAL and self.should_apply_tier2(m, classification)
        ]

        if len(tier1) == 1:
            logger.debug("Resolved collision: using Tier 1 mapping %r", tier1[0].correct_text)
            return tier1[0]

        if len(tier1) > 1:
            warnings.warn(
                f"Multiple Tier 1 mappings for {collision.sounds_like!r} "
                f"({', '.join(m.entity_id for m in tier1)}), skipping replacement",
                AmbiguousCollisionWarning,
                stacklevel=2,
            )
            return None

        if len(tier2) == 1:
            logger.debug("Resolved collision: using Tier 2 mapping %r", tier2[0].correct_text)
            return tier2[0]

        if len(tier2) > 1:
            logger.debug("Multiple Tier 2 mappings match for %r, skipping replacement", collision.sounds_like)
        else:
            logger.debug("No applicable mappings for collision %r", collision.sounds_like)
        return None

    def detect_capitalization_hint(self, sounds_like: str, surrounding_text: Optional[str]) -> CapitalizationHint:
        """
        Read how sounds_like is capitalized in surrounding text.

        Lowercase suggests a common word. Capitalized mid-sentence suggests a
        proper noun. Capitalized at the start of a sentence tells nothing.
        """
        if not self.use_capitalization_hints or not surrounding_text or not sounds_like:
            return CapitalizationHint.UNKNOWN

        pattern = re.compile(rf"(?<!\w){re.escape(sounds_like)}(?!\w)", re.IGNORECASE)
        match = pattern.search(surrounding_text)
        if not match:
            return CapitalizationHint.UNKNOWN

        first = match.group(0)[0]
        if not first.isupper():
            return CapitalizationHint.COMMON_TERM

        before = surrounding_text[:match.start()].rstrip()
        if not before or _SENTENCE_END.search(before):
            return CapitalizationHint.UNKNOWN

        return CapitalizationHint.PROPER_NOUN

    def decide_replacement(self, context: CollisionContext) -> ReplacementDecision:
        """Decide whether to replace one sounds_like token, and with what."""
        classification = context.classification
        mappings = context.available_mappings

        if not mappings:
            return ReplacementDecision(
                should_replace=False,
                reason="No mappings available",
                confidence=1.0,
            )

        if len(mappings) == 1:
            return self._decide_single(mappings[0], classification)

        resolved = self.resolve_collision(
            Collision(sounds_like=context.sounds_like, mappings=list(mappings)),
            classification,
        )
        if resolved:
            return ReplacementDecision(
                should_replace=True,
                mapping=resolved,
                reason=f"Collision resolved ({len(mappings)} candidates)",
                confidence=_confidence_or_default(classification),
            )

        if context.surrounding_text:
            hint = self.detect_capitalization_hint(context.sounds_like, context.surrounding_text)
            if hint == CapitalizationHint.COMMON_TERM:
                return ReplacementDecision(
                    should_replace=False,
                    reason="Capitalization hint suggests common term",
                    confidence=0.7,
                )

        return ReplacementDecision(
            should_replace=False,
            reason="Collision could not be resolved",
            confidence=0.5,
        )

    def _decide_single(self, mapping: SoundsLikeMapping, classification: Classification) -> ReplacementDecision:
        if mapping.tier == Tier.ALWAYS_SAFE:
            return ReplacementDecision(
                should_replace=True,
                mapping=mapping,
                reason="Tier 1 mapping (always safe)",
                confidence=1.0,
            )

        if mapping.tier == Tier.CONDITIONAL:
            if self.should_apply_tier2(mapping, classification):
                return ReplacementDecision(
                    should_replace=True,
                    mapping=mapping,
                    reason=(
                        f"Tier 2 mapping (project: {classification.project}, "
                        f"confidence: {classification.confidence})"
                    ),
                    confidence=_confidence_or_default(classification),
                )
            return ReplacementDecision(
                should_replace=False,
                reason="Tier 2 conditions not met",
                confidence=0.5,
            )

        return ReplacementDecision(
            should_replace=False,
            reason="Tier 3 mapping (too ambiguous)",
            confidence=1.0,
        )


def _confidence_or_default(classification: Classification) -> float:
    return classification.confidence if classification.confidence is not None else 0.5
