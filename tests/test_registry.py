"""Tests for reading entity records from registry locations."""

import logging
from pathlib import Path

import pytest

from soundslike.database import SoundsLikeDatabase
from soundslike.errors import RegistryReadError
from soundslike.models import EntityType
from soundslike.registry import (
    EntityRegistry,
    find_context_directories,
    parse_entity,
    read_entity_file,
)


@pytest.fixture
def context_dir(tmp_path):
    """Create a registry location with projects, people and terms."""
    context = tmp_path / "context"
    (context / "projects").mkdir(parents=True)
    (context / "people").mkdir()
    (context / "terms").mkdir()

    (context / "projects" / "alpha.yaml").write_text("""
id: alpha
name: Alphanova
sounds_like:
  - alfa nova
  - alpha nova
owner: someone
""")
    (context / "projects" / "retired.yml").write_text("""
id: retired
name: Retired Thing
active: false
sounds_like: [retired thing]
""")
    (context / "projects" / "notes.txt").write_text("not an entity")
    (context / "people" / "jdoe.yaml").write_text("""
id: jdoe
name: Jane Doe
sounds_like: jane dough
""")
    (context / "terms" / "k8s.yaml").write_text("""
id: k8s
name: Kubernetes
sounds_like:
  - cooper netties
  - 42
  - ""
""")
    return context


class TestParseEntity:
    """Test validation of parsed documents."""

    def test_valid_entity(self):
        entity = parse_entity({"id": "alpha", "name": "Alphanova", "sounds_like": ["alfa nova"]},
                              EntityType.PROJECT)

        assert entity.id == "alpha"
        assert entity.name == "Alphanova"
        assert entity.sounds_like == ["alfa nova"]
        assert entity.active is True

    def test_missing_id_or_name(self):
        assert parse_entity({"name": "Alphanova"}, EntityType.PROJECT) is None
        assert parse_entity({"id": "alpha"}, EntityType.PROJECT) is None

    def test_not_a_mapping(self):
        assert parse_entity(["alpha"], EntityType.PROJECT) is None
        assert parse_entity(None, EntityType.PROJECT) is None

    def test_missing_sounds_like(self):
        entity = parse_entity({"id": "alpha", "name": "Alphanova"}, EntityType.PROJECT)
        assert entity.sounds_like == []

    def test_sounds_like_wrong_type(self):
        entity = parse_entity({"id": "alpha", "name": "A", "sounds_like": {"a": 1}}, EntityType.PROJECT)
        assert entity.sounds_like == []

    def test_only_explicit_false_deactivates(self):
        assert parse_entity({"id": "a", "name": "A", "active": None}, EntityType.TERM).active is True
        assert parse_entity({"id": "a", "name": "A", "active": False}, EntityType.TERM).active is False


class TestReadEntityFile:
    """Test reading single files."""

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("id: [unclosed\nname: x\n")

        with pytest.raises(RegistryReadError) as exc_info:
            read_entity_file(path, EntityType.PROJECT)
        assert exc_info.value.path == path

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryReadError):
            read_entity_file(tmp_path / "missing.yaml", EntityType.PROJECT)


class TestEntityRegistry:
    """Test reading whole registry locations."""

    def test_reads_all_entity_types(self, context_dir):
        entities = {e.id: e for e in EntityRegistry([context_dir]).entities()}

        assert set(entities) == {"alpha", "retired", "jdoe", "k8s"}
        assert entities["alpha"].entity_type == EntityType.PROJECT
        assert entities["jdoe"].entity_type == EntityType.PERSON
        assert entities["k8s"].entity_type == EntityType.TERM

    def test_inactive_entities_are_returned(self, context_dir):
        entities = {e.id: e for e in EntityRegistry([context_dir]).entities()}
        assert entities["retired"].active is False

    def test_sounds_like_normalized(self, context_dir):
        entities = {e.id: e for e in EntityRegistry([context_dir]).entities()}

        assert entities["jdoe"].sounds_like == ["jane dough"]
        assert entities["k8s"].sounds_like == ["cooper netties"]

    def test_invalid_files_skipped(self, context_dir, caplog):
        (context_dir / "projects" / "broken.yaml").write_text("id: [unclosed\n")
        (context_dir / "projects" / "nameless.yaml").write_text("id: nameless\n")

        with caplog.at_level(logging.WARNING, logger="soundslike"):
            entities = list(EntityRegistry([context_dir]).entities())

        assert {e.id for e in entities} == {"alpha", "retired", "jdoe", "k8s"}
        assert "broken.yaml" in caplog.text

    def test_non_utf8_file_skipped(self, context_dir, caplog):
        (context_dir / "projects" / "garbled.yaml").write_bytes(b"id: garbled\nname: Br\xff\xfeoken\n")

        with caplog.at_level(logging.WARNING, logger="soundslike"):
            entities = list(EntityRegistry([context_dir]).entities())

        assert {e.id for e in entities} == {"alpha", "retired", "jdoe", "k8s"}
        assert "garbled.yaml" in caplog.text

    def test_non_utf8_file_keeps_other_mappings(self, context_dir):
        (context_dir / "projects" / "garbled.yaml").write_bytes(b"id: garbled\nname: Br\xff\xfeoken\n")

        database = SoundsLikeDatabase(registry=EntityRegistry([context_dir])).load()

        assert "alfa nova" in {m.sounds_like for m in database.get_tier1_mappings()}

    def test_unreadable_entity_directory_skipped(self, context_dir, monkeypatch):
        original_iterdir = Path.iterdir

        def iterdir(self):
            if self.name == "people":
                raise PermissionError("permission denied")
            return original_iterdir(self)

        monkeypatch.setattr(Path, "iterdir", iterdir)
        entities = EntityRegistry([context_dir]).read_location(context_dir)

        assert {e.id for e in entities} == {"alpha", "retired", "k8s"}

    def test_missing_entity_directory(self, tmp_path):
        context = tmp_path / "context"
        (context / "projects").mkdir(parents=True)
        (context / "projects" / "alpha.yaml").write_text("id: alpha\nname: Alphanova\n")

        assert [e.id for e in EntityRegistry([context]).entities()] == ["alpha"]

    def test_missing_location_skipped(self, context_dir, tmp_path):
        registry = EntityRegistry([tmp_path / "does-not-exist", context_dir])
        assert len(list(registry.entities())) == 4

    def test_read_location_raises_for_missing(self, tmp_path):
        with pytest.raises(RegistryReadError):
            EntityRegistry([tmp_path]).read_location(tmp_path / "nope")

    def test_several_locations(self, context_dir, tmp_path):
        other = tmp_path / "other"
        (other / "projects").mkdir(parents=True)
        (other / "projects" / "beta.yaml").write_text("id: beta\nname: Betamax\nsounds_like: [better max]\n")

        ids = [e.id for e in EntityRegistry([context_dir, other]).entities()]
        assert "beta" in ids
        assert "alpha" in ids


class TestFindContextDirectories:
    """Test resolving registry locations."""

    def test_configured_paths_returned(self, tmp_path):
        assert find_context_directories([tmp_path, str(tmp_path / "x")]) == [tmp_path, tmp_path / "x"]

    def test_default_missing(self, monkeypatch, tmp_path):
        monkeypatch.setattr("soundslike.registry.DEFAULT_CONTEXT_PATH", tmp_path / "missing")
        assert find_context_directories() == []

    def test_default_present(self, monkeypatch, tmp_path):
        monkeypatch.setattr("soundslike.registry.DEFAULT_CONTEXT_PATH", tmp_path)
        assert find_context_directories([]) == [tmp_path]
