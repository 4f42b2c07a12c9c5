"""Tests for stats and catalog output."""

import csv
import io
import json

import pytest

from soundslike.database import SoundsLikeDatabase
from soundslike.models import (
    AppliedMappingStat,
    Classification,
    CorrectionResult,
    CorrectionStats,
    EntityType,
)
from soundslike.output import (
    JsonStatsSink,
    format_mappings,
    format_stats,
    write_collisions_json,
    write_mappings_csv,
    write_stats_json,
)
from soundslike.registry import EntityRecord


@pytest.fixture
def database():
    return SoundsLikeDatabase.from_entities([
        EntityRecord("alpha", "Alphanova", EntityType.PROJECT, ["alfa nova", "shared"]),
        EntityRecord("beta", "Betamax", EntityType.PROJECT, ["shared"]),
    ])


@pytest.fixture
def result():
    stats = CorrectionStats(
        tier1_replacements=2,
        total_replacements=2,
        tier1_mappings_considered=1,
        project_context="alpha",
        classification_confidence=0.9,
        processing_time_ms=1.23456,
        applied_mappings=[AppliedMappingStat("alfa nova", "Alphanova", 1, 2)],
    )
    return CorrectionResult(text="Alphanova and Alphanova", stats=stats)


class TestWriteStatsJson:
    """Test JSON statistics output."""

    def test_to_file_handle(self, result):
        buffer = io.StringIO()
        write_stats_json(result, Classification("alpha", 0.9), buffer)
        data = json.loads(buffer.getvalue())

        assert data["stats"]["total_replacements"] == 2
        assert data["stats"]["processing_time_ms"] == 1.235
        assert data["stats"]["applied_mappings"][0]["occurrences"] == 2
        assert data["classification"] == {"project": "alpha", "confidence": 0.9}
        assert "tier1_mappings_considered" not in data

    def test_sink_writes_named_file(self, tmp_path, result, database):
        sink = JsonStatsSink(tmp_path / "stats", database=database)
        sink(result, Classification("alpha", 0.9), "call-7")

        data = json.loads((tmp_path / "stats" / "call-7.corrections.stats.json").read_text())
        assert data["tier1_mappings_considered"] == [{"sounds_like": "alfa nova", "correct_text": "Alphanova"}]


class TestMappingOutput:
    """Test catalog listings."""

    def test_csv(self, database):
        buffer = io.StringIO()
        write_mappings_csv(database.mappings, buffer)
        rows = list(csv.DictReader(io.StringIO(buffer.getvalue())))

        assert len(rows) == 3
        shared = [r for r in rows if r["sounds_like"] == "shared"]
        assert {r["scoped_to_projects"] for r in shared} == {"alpha", "beta"}
        assert all(r["tier"] == "2" and r["collision_risk"] == "high" for r in shared)

    def test_json_to_path(self, tmp_path, database):
        path = tmp_path / "mappings.json"
        format_mappings(database.mappings, path, format="json")

        data = json.loads(path.read_text())
        assert data[0]["sounds_like"] == "alfa nova"
        assert data[0]["tier"] == 1

    def test_unsupported_format(self, database):
        with pytest.raises(ValueError):
            format_mappings(database.mappings, io.StringIO(), format="xml")

    def test_collisions(self, database):
        buffer = io.StringIO()
        write_collisions_json(database.get_all_collisions(), buffer)
        data = json.loads(buffer.getvalue())

        assert len(data) == 1
        assert data[0]["sounds_like"] == "shared"
        assert data[0]["count"] == 2


class TestFormatStats:
    def test_summary_lines(self, result):
        text = format_stats(result.stats)

        assert "Total replacements: 2" in text
        assert "Project: alpha" in text
        assert "[T1] 'alfa nova' -> 'Alphanova' x2" in text


class TestClassification:
    def test_from_dict_moves_unknown_keys_to_extra(self):
        classification = Classification.from_dict({"project": "alpha", "confidence": "0.8", "labels": ["x"]})

        assert classification.project == "alpha"
        assert classification.confidence == 0.8
        assert classification.extra == {"labels": ["x"]}
        assert classification.to_dict() == {"project": "alpha", "confidence": 0.8}

    def test_from_dict_empty(self):
        classification = Classification.from_dict(None)

        assert classification.project is None
        assert classification.confidence is None
