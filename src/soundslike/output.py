"""Output formatters for correction statistics and mapping catalogs."""

import csv
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional, TextIO

from .models import (
    Classification,
    Collision,
    CorrectionResult,
    CorrectionStats,
    SoundsLikeMapping,
    mapping_to_dict,
)

if TYPE_CHECKING:
    from .database import SoundsLikeDatabase

logger = logging.getLogger(__name__)

MAPPING_FIELDS = [
    "sounds_like", "correct_text", "entity_type", "entity_id",
    "tier", "collision_risk", "scoped_to_projects", "min_confidence",
]


def _dump_json(data, output: str | Path | TextIO, indent: int = 2) -> None:
    if isinstance(output, (str, Path)):
        with open(output, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
    else:
        json.dump(data, output, indent=indent, ensure_ascii=False)


def write_stats_json(
    result: CorrectionResult,
    classification: Classification,
    output: str | Path | TextIO,
    tier1_mappings: Optional[Iterable[SoundsLikeMapping]] = None,
) -> None:
    """
    Write the statistics of one correction pass to JSON.

    JSON structure:
    {
        "stats": {...},
        "classification": {"project": ..., "confidence": ...},
        "tier1_mappings_considered": [{"sounds_like": ..., "correct_text": ...}]
    }
    """
    data = {
        "stats": result.stats.to_dict(),
        "classification": classification.to_dict(),
    }
    if tier1_mappings is not None:
        data["tier1_mappings_considered"] = [
            {"sounds_like": m.sounds_like, "correct_text": m.correct_text}
            for m in tier1_mappings
        ]

    _dump_json(data, output)


class JsonStatsSink:
    """Writes <document_id>.corrections.stats.json files for each pass."""

    def __init__(self, directory: Path | str, database: Optional["SoundsLikeDatabase"] = None):
        self.directory = Path(directory)
        self.database = database

    def path_for(self, document_id: str) -> Path:
        return self.directory / f"{document_id}.corrections.stats.json"

    def __call__(self, result: CorrectionResult, classification: Classification, document_id: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(document_id)

        tier1 = self.database.get_tier1_mappings() if self.database is not None else None
        write_stats_json(result, classification, path, tier1_mappings=tier1)
        logger.debug("Saved correction stats to %s", path)


def write_mappings_csv(mappings: Iterable[SoundsLikeMapping], output: str | Path | TextIO) -> None:
    """
    Write mappings to CSV format.

    CSV columns: sounds_like, correct_text, entity_type, entity_id, tier,
    collision_risk, scoped_to_projects, min_confidence
    """
    def write_to_file(f: TextIO) -> None:
        writer = csv.DictWriter(f, fieldnames=MAPPING_FIELDS)
        writer.writeheader()

        for mapping in mappings:
            row = mapping_to_dict(mapping)
            row["scoped_to_projects"] = ";".join(row["scoped_to_projects"] or [])
            row["collision_risk"] = row["collision_risk"] or ""
            row["min_confidence"] = "" if row["min_confidence"] is None else row["min_confidence"]
            writer.writerow(row)

    if isinstance(output, (str, Path)):
        with open(output, "w", newline="", encoding="utf-8") as f:
            write_to_file(f)
    else:
        write_to_file(output)


def write_mappings_json(mappings: Iterable[SoundsLikeMapping], output: str | Path | TextIO) -> None:
    """Write mappings to a JSON list."""
    _dump_json([mapping_to_dict(m) for m in mappings], output)


def write_collisions_json(collisions: Iterable[Collision], output: str | Path | TextIO) -> None:
    """Write collisions, each with its competing mappings, to JSON."""
    _dump_json([c.to_dict() for c in collisions], output)


def format_mappings(mappings: Iterable[SoundsLikeMapping], output: str | Path | TextIO, format: str = "csv") -> None:
    """
    Write mappings in the specified format.

    Args:
        mappings: Mappings to write
        output: Output file path or file handle
        format: Output format ('csv' or 'json')
    """
    if format == "csv":
        write_mappings_csv(mappings, output)
    elif format == "json":
        write_mappings_json(mappings, output)
    else:
        raise ValueError(f"Unsupported format: {format}")


def format_stats(stats: CorrectionStats) -> str:
    """Return a human-readable summary of a correction pass."""
    lines = [
        f"Total replacements: {stats.total_replacements}",
        f"  Tier 1: {stats.tier1_replacements} ({stats.tier1_mappings_considered} mappings considered)",
        f"  Tier 2: {stats.tier2_replacements} ({stats.tier2_mappings_considered} mappings considered)",
        f"Project: {stats.project_context or '-'}",
        f"Confidence: {'-' if stats.classification_confidence is None else stats.classification_confidence}",
        f"Time: {stats.processing_time_ms:.1f}ms",
    ]
    if stats.applied_mappings:
        lines.append("")
        lines.append("Applied mappings:")
        for a in stats.applied_mappings:
            lines.append(f"  [T{a.tier}] {a.sounds_like!r} -> {a.correct_text!r} x{a.occurrences}")
    return "\n".join(lines)
