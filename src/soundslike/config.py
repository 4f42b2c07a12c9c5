"""Configuration loader for soundslike registry, tier and replacement settings."""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigurationError

DEFAULT_CONTEXT_PATH = Path.home() / ".soundslike" / "context"

# Words that need project scope before they may be rewritten
DEFAULT_COMMON_TERMS = [
    "protocol",
    "observation",
    "composition",
    "gateway",
    "service",
    "system",
    "platform",
]

# Words too generic to ever rewrite automatically
DEFAULT_GENERIC_TERMS = [
    "meeting",
    "update",
    "work",
    "project",
    "task",
    "issue",
    "discussion",
    "review",
    "the",
    "a",
    "an",
]


@dataclass
class RegistryConfig:
    """Where entity records are read from."""
    # Empty means "use DEFAULT_CONTEXT_PATH if it exists"
    context_paths: list[Path] = field(default_factory=list)


@dataclass
class DatabaseConfig:
    """Collision detection and tier classification."""
    detect_collisions: bool = True
    common_terms: list[str] = field(default_factory=lambda: list(DEFAULT_COMMON_TERMS))
    generic_terms: list[str] = field(default_factory=lambda: list(DEFAULT_GENERIC_TERMS))


@dataclass
class DetectorConfig:
    """Collision resolution hints."""
    use_capitalization_hints: bool = True


@dataclass
class ReplacerConfig:
    """Text replacement behaviour for the correction phase."""
    # Entity names keep their canonical spelling ("protocol" -> "Protokoll")
    preserve_case: bool = False
    use_word_boundaries: bool = True
    case_insensitive: bool = True


@dataclass
class DebugConfig:
    """Debug output."""
    enabled: bool = False
    stats_dir: Optional[Path] = None


@dataclass
class SoundsLikeConfig:
    """Root configuration object."""
    # Stamped on project-scoped tier 2 mappings and used by the detector
    tier2_min_confidence: float = 0.6
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    replacer: ReplacerConfig = field(default_factory=ReplacerConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)

    def validate(self) -> "SoundsLikeConfig":
        """
        Check option values.

        Raises:
            ConfigurationError: If a threshold is outside [0, 1] or a term
                list is not a list of strings.
        """
        self.tier2_min_confidence = check_confidence("tier2_min_confidence", self.tier2_min_confidence)

        for name in ("common_terms", "generic_terms"):
            terms = getattr(self.database, name)
            if not isinstance(terms, (list, tuple, set)) or not all(isinstance(t, str) for t in terms):
                raise ConfigurationError(f"database.{name} must be a list of strings")

        return self


def check_confidence(name: str, value) -> float:
    """Raise ConfigurationError unless value is a number in [0, 1]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")
    return float(value)


def load_config(config_path: Optional[Path | str] = None) -> SoundsLikeConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses config/soundslike.yaml
            at the project root when it exists.

    Returns:
        Validated SoundsLikeConfig
    """
    if config_path is None:
        default_path = Path(__file__).parent.parent.parent / "config" / "soundslike.yaml"
        if default_path.exists():
            config_path = default_path
        else:
            return SoundsLikeConfig().validate()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    return _parse_config(data).validate()


def _parse_config(data: dict) -> SoundsLikeConfig:
    """Parse configuration from dict."""
    config = SoundsLikeConfig()
    config.tier2_min_confidence = data.get("tier2_min_confidence", 0.6)

    if "registry" in data:
        r = data["registry"] or {}
        paths = r.get("context_paths") or []
        if isinstance(paths, str):
            paths = [paths]
        config.registry.context_paths = [Path(p).expanduser() for p in paths]

    if "database" in data:
        d = data["database"] or {}
        config.database.detect_collisions = d.get("detect_collisions", True)
        if "common_terms" in d:
            config.database.common_terms = d["common_terms"] or []
        if "generic_terms" in d:
            config.database.generic_terms = d["generic_terms"] or []

    if "detector" in data:
        c = data["detector"] or {}
        config.detector.use_capitalization_hints = c.get("use_capitalization_hints", True)

    if "replacer" in data:
        rp = data["replacer"] or {}
        config.replacer.preserve_case = rp.get("preserve_case", False)
        config.replacer.use_word_boundaries = rp.get("use_word_boundaries", True)
        config.replacer.case_insensitive = rp.get("case_insensitive", True)

    if "debug" in data:
        dbg = data["debug"] or {}
        config.debug.enabled = dbg.get("enabled", False)
        stats_dir = dbg.get("stats_dir")
        config.debug.stats_dir = Path(stats_dir).expanduser() if stats_dir else None

    return config


def configure_logging(verbose: bool = False) -> None:
    """
    Send soundslike log records to stderr.

    Library modules only create loggers; the CLI calls this once at startup.
    Warnings (such as AmbiguousCollisionWarning) are routed into logging.

    Args:
        verbose: DEBUG level when True, WARNING otherwise
    """
    level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
                                           datefmt="%H:%M:%S"))

    for name in ("soundslike", "py.warnings"):
        log = logging.getLogger(name)
        log.setLevel(level)
        log.handlers.clear()
        log.addHandler(handler)
        log.propagate = False

    logging.captureWarnings(True)
