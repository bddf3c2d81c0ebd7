"""Configuration system for rip."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path

import tomlkit


@dataclass
class SamplerConfig:
    """Process sampling configuration."""

    sample_delay: float = 0.2  # Seconds between the two CPU snapshots (min 0.1)


@dataclass
class LiveConfig:
    """Live mode timing."""

    refresh_interval: float = 2.0  # Seconds between automatic refreshes
    poll_interval: float = 0.1  # Seconds between input/timer checks


@dataclass
class DefaultsConfig:
    """Defaults for command-line options."""

    signal: str = "KILL"
    sort: str = "cpu"


@dataclass
class LoggingConfig:
    """Log file rotation."""

    log_max_bytes: int = 1024 * 1024  # Max log file size (1MB)
    log_backup_count: int = 2  # Number of backup log files to keep


def _section(cls: type, name: str, data: object) -> object:
    """Build a section dataclass, using defaults for keys missing from data.

    Raises:
        ValueError: If a value has the wrong type or a positive setting is <= 0.
    """
    defaults = cls()
    if not isinstance(data, Mapping):
        return defaults
    values = {}
    for f in fields(cls):
        value = data.get(f.name, getattr(defaults, f.name))
        # tomlkit items wrap plain values
        value = value.unwrap() if hasattr(value, "unwrap") else value
        values[f.name] = _check(f"{name}.{f.name}", f.type, value)
    return cls(**values)


def _check(key: str, expected: type, value: object) -> object:
    """Validate one setting against its declared type."""
    # bool is an int subclass; TOML booleans are never valid here
    if isinstance(value, bool) or not isinstance(value, _ACCEPTED[expected]):
        raise ValueError(f"Invalid {key}: expected {expected.__name__}, got {value!r}")
    if key in _POSITIVE and value <= 0:
        raise ValueError(f"{key} must be > 0, got {value}")
    return float(value) if expected is float else value


_ACCEPTED = {float: (int, float), int: (int,), str: (str,)}

_POSITIVE = {
    "sampler.sample_delay",
    "live.refresh_interval",
    "live.poll_interval",
    "logging.log_max_bytes",
}


@dataclass
class Config:
    """Main configuration container."""

    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    live: LiveConfig = field(default_factory=LiveConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "rip"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "rip"

    @property
    def log_path(self) -> Path:
        """Log file path."""
        return self.state_dir / "rip.log"

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file exists but is not valid TOML, or a setting
                has the wrong type or an out-of-range value.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampler=_section(SamplerConfig, "sampler", data.get("sampler")),
            live=_section(LiveConfig, "live", data.get("live")),
            defaults=_section(DefaultsConfig, "defaults", data.get("defaults")),
            logging=_section(LoggingConfig, "logging", data.get("logging")),
        )
