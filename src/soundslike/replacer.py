"""
Text replacement with case preservation and word-boundary matching.

Matching is literal: every sounds_like value is escaped before it becomes a
pattern, so registry data can never inject regex syntax.
"""

import logging
import re
from enum import Enum
from typing import Iterable

from .errors import MappingCompileError
from .models import ReplacementOccurrence, ReplacementResult, SoundsLikeMapping

logger = logging.getLogger(__name__)


class CaseStyle(Enum):
    """Case pattern of a matched span."""
    UPPER = "upper"
    LOWER = "lower"
    TITLE = "title"
    MIXED = "mixed"


def get_case_style(text: str) -> CaseStyle:
    """Determine the case style of a string."""
    # All caps, and there is at least one cased letter
    if text and text == text.upper() and text.upper() != text.lower():
        return CaseStyle.UPPER
    if text == text.lower():
        return CaseStyle.LOWER
    if text[0] == text[0].upper():
        return CaseStyle.TITLE
    return CaseStyle.MIXED


def apply_case_style(replacement: str, style: CaseStyle) -> str:
    """
    Make a replacement follow the case style of the text it replaces.

    "protocol" -> "protokoll", "Protocol" -> "Protokoll",
    "PROTOCOL" -> "PROTOKOLL". Title case only touches the first character;
    mixed case keeps the replacement as written.
    """
    if style == CaseStyle.UPPER:
        return replacement.upper()
    if style == CaseStyle.LOWER:
        return replacement.lower()
    if style == CaseStyle.TITLE:
        return replacement[:1].upper() + replacement[1:]
    return replacement


class TextReplacer:
    """Applies sounds_like mappings to text."""

    def __init__(
        self,
        preserve_case: bool = True,
        use_word_boundaries: bool = True,
        case_insensitive: bool = True,
    ):
        """
        Args:
            preserve_case: Adapt the replacement to the matched text's case
            use_word_boundaries: Only match when not adjacent to a word character
            case_insensitive: Ignore case when matching
        """
        self.preserve_case = preserve_case
        self.use_word_boundaries = use_word_boundaries
        self.case_insensitive = case_insensitive

    def compile_pattern(self, sounds_like: str) -> re.Pattern:
        """
        Build the match pattern for one sounds_like value.

        Raises:
            MappingCompileError: If sounds_like is empty or the pattern fails
                to compile
        """
        if not sounds_like or not sounds_like.strip():
            raise MappingCompileError(sounds_like, "empty sounds_like")

        pattern = re.escape(sounds_like)
        if self.use_word_boundaries:
            pattern = rf"(?<!\w){pattern}(?!\w)"

        flags = re.IGNORECASE if self.case_insensitive else 0
        try:
            return re.compile(pattern, flags)
        except re.error as e:
            raise MappingCompileError(sounds_like, str(e)) from e

    def apply_single_replacement(self, text: str, mapping: SoundsLikeMapping) -> ReplacementResult:
        """
        Replace every match of one mapping.

        A mapping whose pattern cannot be built is logged and leaves the text
        untouched.
        """
        try:
            pattern = self.compile_pattern(mapping.sounds_like)
        except MappingCompileError as e:
            logger.warning("Skipping mapping %s: %s", mapping.describe(), e.reason)
            return ReplacementResult(text=text)

        occurrences = []
        spans = []

        # Collect spans against the unmodified text
        for match in pattern.finditer(text):
            original = match.group(0)
            replacement = mapping.correct_text
            if self.preserve_case:
                replacement = apply_case_style(replacement, get_case_style(original))

            spans.append((match.start(), match.end(), replacement))
            occurrences.append(ReplacementOccurrence(
                original=original,
                replacement=replacement,
                position=match.start(),
                mapping=mapping,
            ))

        if not spans:
            return ReplacementResult(text=text)

        # Back to front so earlier offsets stay valid
        result = text
        for start, end, replacement in reversed(spans):
            result = result[:start] + replacement + result[end:]

        count = len(spans)
        logger.debug("Replaced %r -> %r (%d occurrence%s)",
                     mapping.sounds_like, mapping.correct_text, count, "" if count == 1 else "s")

        return ReplacementResult(
            text=result,
            count=count,
            occurrences=occurrences,
            applied_mappings=[mapping],
        )

    def apply_replacements(self, text: str, mappings: Iterable[SoundsLikeMapping]) -> ReplacementResult:
        """Apply mappings in order, each one to the output of the previous."""
        result = ReplacementResult(text=text)
        considered = 0

        for mapping in mappings:
            considered += 1
            single = self.apply_single_replacement(result.text, mapping)
            if single.count == 0:
                continue

            result.text = single.text
            result.count += single.count
            result.occurrences.extend(single.occurrences)
            result.applied_mappings.append(mapping)

        logger.debug("Applied %d mappings, made %d replacements (%d mappings had matches)",
                     considered, result.count, len(result.applied_mappings))
        return result
