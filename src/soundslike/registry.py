"""
Entity registry reader.

A registry location (context directory) holds one YAML file per entity:

    <context>/projects/<id>.yaml
    <context>/people/<id>.yaml
    <context>/terms/<id>.yaml

Only ``id``, ``name``, ``sounds_like`` and ``active`` are read; every other
key is ignored.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import yaml

from .config import DEFAULT_CONTEXT_PATH
from .errors import RegistryReadError
from .models import EntityType

logger = logging.getLogger(__name__)

ENTITY_DIRECTORIES: dict[str, EntityType] = {
    "projects": EntityType.PROJECT,
    "people": EntityType.PERSON,
    "terms": EntityType.TERM,
}

YAML_SUFFIXES = (".yaml", ".yml")


@dataclass
class EntityRecord:
    """The slice of a registry entity used for corrections."""

    id: str
    name: str
    entity_type: EntityType
    sounds_like: list[str] = field(default_factory=list)
    active: bool = True
    source: Optional[Path] = None


def find_context_directories(context_paths: Optional[list[Path | str]] = None) -> list[Path]:
    """
    Resolve the registry locations to read.

    Configured paths are returned as given, even if they do not exist (they
    then contribute nothing). With nothing configured, the default location is
    used when present.
    """
    if context_paths:
        return [Path(p).expanduser() for p in context_paths]

    if DEFAULT_CONTEXT_PATH.is_dir():
        logger.debug("Found registry context at %s", DEFAULT_CONTEXT_PATH)
        return [DEFAULT_CONTEXT_PATH]

    logger.debug("No registry context found at %s", DEFAULT_CONTEXT_PATH)
    return []


def _normalize_sounds_like(value, source: Optional[Path]) -> list[str]:
    """Coerce a sounds_like value into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        logger.warning("Ignoring sounds_like in %s: expected a list, got %s", source, type(value).__name__)
        return []

    variants = []
    for item in value:
        if not isinstance(item, str):
            logger.debug("Ignoring non-string sounds_like entry %r in %s", item, source)
            continue
        item = item.strip()
        if item:
            variants.append(item)
    return variants


def parse_entity(data, entity_type: EntityType, source: Optional[Path] = None) -> Optional[EntityRecord]:
    """
    Validate one parsed registry document.

    Returns:
        EntityRecord, or None if the document is not an entity (no id or name)
    """
    if not isinstance(data, dict):
        return None

    entity_id = data.get("id")
    name = data.get("name")
    if not entity_id or not name:
        return None

    return EntityRecord(
        id=str(entity_id),
        name=str(name),
        entity_type=entity_type,
        sounds_like=_normalize_sounds_like(data.get("sounds_like"), source),
        active=data.get("active") is not False,
        source=source,
    )


def read_entity_file(path: Path, entity_type: EntityType) -> Optional[EntityRecord]:
    """
    Read a single entity file.

    Raises:
        RegistryReadError: If the file cannot be read or is not valid YAML
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise RegistryReadError(path, str(e)) from e
    except UnicodeDecodeError as e:
        raise RegistryReadError(path, f"not valid UTF-8: {e}") from e
    except yaml.YAMLError as e:
        raise RegistryReadError(path, f"invalid YAML: {e}") from e

    return parse_entity(data, entity_type, source=path)


class EntityRegistry:
    """Reads entity records from one or more registry locations."""

    def __init__(self, context_paths: Optional[list[Path | str]] = None):
        """
        Args:
            context_paths: Registry locations. If empty, the default
                location is used when it exists.
        """
        self.context_paths = find_context_directories(context_paths)

    def read_location(self, context_dir: Path) -> list[EntityRecord]:
        """
        Read every entity in one registry location.

        Unreadable or invalid entity files and unreadable entity directories
        are logged and skipped. A missing entity directory contributes nothing.

        Raises:
            RegistryReadError: If the location itself is missing
        """
        if not context_dir.is_dir():
            raise RegistryReadError(context_dir, "not a directory")

        entities = []
        for dir_name, entity_type in ENTITY_DIRECTORIES.items():
            entity_dir = context_dir / dir_name
            if not entity_dir.is_dir():
                logger.debug("No %s directory in %s", dir_name, context_dir)
                continue

            try:
                files = sorted(p for p in entity_dir.iterdir() if p.suffix in YAML_SUFFIXES)
            except OSError as e:
                logger.warning("Skipping unreadable %s directory %s: %s", dir_name, entity_dir, e)
                continue

            for path in files:
                try:
                    entity = read_entity_file(path, entity_type)
                except RegistryReadError as e:
                    logger.warning("Skipping unreadable entity file %s", e)
                    continue

                if entity is None:
                    logger.debug("Skipping invalid %s file: %s", entity_type.value, path.name)
                    continue

                entities.append(entity)

        logger.debug("Read %d entities from %s", len(entities), context_dir)
        return entities

    def entities(self) -> Iterator[EntityRecord]:
        """Yield entities from every location, skipping unreadable locations."""
        if not self.context_paths:
            logger.warning("No registry context directories found")
            return

        for context_dir in self.context_paths:
            try:
                yield from self.read_location(context_dir)
            except RegistryReadError as e:
                logger.warning("Skipping registry location %s", e)
