"""Configuration classes for encoding probing and transliteration.

This module provides configuration objects for the prober and the
transliterator, plus a frozen top-level configuration that can be loaded from
and saved to JSON.
"""

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

# Lowest byte value counted as ASCII by the legacy preset
LEGACY_ASCII_LOWER_BOUND = 8

VALID_TARGETS = ("ascii", "utf8")
VALID_LOGGING_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class ProbeConfig:
    """Configuration for the byte-level encoding prober.

    Attributes:
        ascii_lower_bound: Smallest byte value classified as ASCII. Bytes below
            it fall through to the non-ASCII rules and end up as ``utf8_invalid``.
        count_truncated_sequence: Whether a multi-byte sequence left open at end
            of stream is counted as one ``utf8_invalid`` event or dropped.
        max_bytes: Stop probing after this many bytes (``None`` for no limit).
        chunk_size: Read size used when draining file-like sources.
    """

    ascii_lower_bound: int = 0
    count_truncated_sequence: bool = True
    max_bytes: Optional[int] = None
    chunk_size: int = 8192

    def __post_init__(self) -> None:
        """Validate probe configuration."""
        if not (0 <= self.ascii_lower_bound <= 0x80):
            raise ValueError("ascii_lower_bound must be between 0 and 128")
        if self.max_bytes is not None and self.max_bytes < 0:
            raise ValueError("max_bytes must be >= 0 or None")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")

    @classmethod
    def legacy(cls) -> "ProbeConfig":
        """Create configuration that counts control bytes 0-7 as invalid and drops truncated sequences."""
        return cls(
            ascii_lower_bound=LEGACY_ASCII_LOWER_BOUND,
            count_truncated_sequence=False,
        )


@dataclass
class TransliterationConfig:
    """Configuration for the code point transliterator.

    Attributes:
        target: ``"ascii"`` for lossy ASCII output, ``"utf8"`` to keep the
            decoded code points unchanged.
        placeholder_format: Format for unmapped code points; receives ``hex``,
            ``code_point`` and ``name``.
        log_unmapped: Whether unmapped code points are logged as warnings.
        custom_mappings: Extra character name to replacement entries, consulted
            before the built-in table.
        chunk_size: Read size used when draining file-like sources.
    """

    target: str = "ascii"
    placeholder_format: str = "[[{hex}='{name}']]"
    log_unmapped: bool = True
    custom_mappings: Dict[str, str] = field(default_factory=dict)
    chunk_size: int = 8192

    def __post_init__(self) -> None:
        """Validate transliteration configuration."""
        if self.target not in VALID_TARGETS:
            raise ValueError(f"target must be one of {list(VALID_TARGETS)}")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        for name, replacement in self.custom_mappings.items():
            if not replacement.isascii():
                raise ValueError(
                    f"custom mapping for {name!r} must be ASCII, got {replacement!r}"
                )


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class GuessEncodingConfig:
    """Complete configuration for probing and transliteration.

    Thread-safe due to frozen dataclass implementation; the nested component
    configurations are treated as read-only once attached.
    """

    probe: ProbeConfig = field(default_factory=ProbeConfig)
    transliteration: TransliterationConfig = field(
        default_factory=TransliterationConfig
    )

    correlation_id: Optional[str] = None
    logging_level: str = "WARNING"
    name: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the complete configuration."""
        try:
            self.probe.__post_init__()
            self.transliteration.__post_init__()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

        if self.logging_level not in VALID_LOGGING_LEVELS:
            raise ConfigValidationError(
                f"logging_level must be one of {VALID_LOGGING_LEVELS}",
                field_name="logging_level",
            )

    def override(self, **kwargs: Any) -> "GuessEncodingConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Field overrides; ``probe__max_bytes=1024`` style keys
                address nested component fields.

        Returns:
            New GuessEncodingConfig instance with overrides applied

        Example:
            >>> config = GuessEncodingConfig()
            >>> new_config = config.override(
            ...     probe__max_bytes=4096,
            ...     transliteration__target="utf8"
            ... )
        """
        nested_overrides: Dict[str, Dict[str, Any]] = {}
        new_fields: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.split("__", 1)
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                new_fields[key] = value

        for component, field_overrides in nested_overrides.items():
            if component not in ("probe", "transliteration"):
                raise ConfigValidationError(
                    f"Unknown configuration component: {component}",
                    field_name=component,
                    suggestions=["probe", "transliteration"],
                )
            base = new_fields.get(component, getattr(self, component))
            new_fields[component] = replace(base, **field_overrides)

        return replace(self, **new_fields)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        def _dataclass_to_dict(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {
                    name: _dataclass_to_dict(getattr(obj, name))
                    for name in obj.__dataclass_fields__
                }
            if isinstance(obj, dict):
                return {key: _dataclass_to_dict(value) for key, value in obj.items()}
            return obj

        result = _dataclass_to_dict(self)
        if not isinstance(result, dict):
            raise ConfigValidationError("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuessEncodingConfig":
        """Create configuration from dictionary.

        Unknown keys are rejected so that typos in configuration files surface
        instead of silently falling back to defaults.
        """
        components = {"probe": ProbeConfig, "transliteration": TransliterationConfig}

        field_values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in cls.__dataclass_fields__:
                raise ConfigValidationError(
                    f"Unknown configuration field: {key}",
                    field_name=key,
                    suggestions=sorted(cls.__dataclass_fields__),
                )
            if key in components:
                target_class = components[key]
                unknown = set(value) - set(target_class.__dataclass_fields__)
                if unknown:
                    raise ConfigValidationError(
                        f"Unknown {key} fields: {sorted(unknown)}",
                        field_name=key,
                        suggestions=sorted(target_class.__dataclass_fields__),
                    )
                try:
                    field_values[key] = target_class(**value)
                except ValueError as e:
                    raise ConfigValidationError(str(e), field_name=key) from e
            else:
                field_values[key] = value

        return cls(**field_values)

    @classmethod
    def from_json(cls, json_str: str) -> "GuessEncodingConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid configuration JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("Configuration JSON must be an object")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "GuessEncodingConfig":
        """Load configuration from a JSON file."""
        config_path = Path(path)
        try:
            json_str = config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Could not read config file {config_path}: {e}") from e
        return cls.from_json(json_str)

    # Preset factory methods
    @classmethod
    def legacy(cls) -> "GuessEncodingConfig":
        """Create preset using the legacy byte counting rules."""
        return cls(probe=ProbeConfig.legacy(), name="legacy")

    @classmethod
    def canonical_utf8(cls) -> "GuessEncodingConfig":
        """Create preset that decodes to canonical UTF-8 without transliterating."""
        return cls(
            transliteration=TransliterationConfig(target="utf8"),
            name="canonical_utf8",
        )
