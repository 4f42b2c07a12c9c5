"""Exception and warning types raised by soundslike."""


class SoundsLikeError(Exception):
    """Base class for soundslike errors."""


class RegistryReadError(SoundsLikeError):
    """A registry location or entity file could not be read or parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class MappingCompileError(SoundsLikeError):
    """A sounds_like value could not be turned into a match pattern."""

    def __init__(self, sounds_like: str, reason: str):
        self.sounds_like = sounds_like
        self.reason = reason
        super().__init__(f"Cannot compile pattern for {sounds_like!r}: {reason}")


class ConfigurationError(SoundsLikeError, ValueError):
    """Invalid configuration value. Fatal at construction time."""


class AmbiguousCollisionWarning(UserWarning):
    """Several tier 1 mappings share one sounds_like value (registry data problem)."""
