"""Runtime settings.

Resolution order, later wins: built-in defaults, ``<data_dir>/config.toml``,
environment variables. The data directory itself comes from the
``DIVIDEND_TRACKER_DATA_DIR`` variable or an explicit argument.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

from .analytics.projection import GrowthScenario, ProjectionMethod
from .errors import ConfigError, DividendTrackerError

DATA_DIR_ENV = "DIVIDEND_TRACKER_DATA_DIR"
DEFAULT_DATA_DIR = Path.home() / ".dividend-tracker"
CONFIG_FILE = "config.toml"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    """Configuration for a dividend-tracker run.

    Attributes:
        data_dir: Directory holding ``dividends.json`` and ``backups/``.
        max_backups: Number of ledger backups kept on save.
        default_method: Projection baseline used when none is given.
        default_scenario: Growth scenario used when none is given; ``None``
            means the historical growth rate.
        log_level: Root log level for the CLI.
        request_timeout: Seconds before a dividend history download gives up.
    """

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    max_backups: int = 10
    default_method: ProjectionMethod = ProjectionMethod.LAST_TWELVE_MONTHS
    default_scenario: Optional[GrowthScenario] = None
    log_level: str = "WARNING"
    request_timeout: float = 15.0


def _coerce(settings: Settings, values: Mapping[str, object], source: str) -> Settings:
    updates = {}
    try:
        if values.get("max_backups") is not None:
            updates["max_backups"] = int(values["max_backups"])
            if updates["max_backups"] < 0:
                raise ConfigError(f"{source}: max_backups cannot be negative")
        if values.get("default_method"):
            updates["default_method"] = ProjectionMethod.parse(values["default_method"])
        if values.get("default_scenario"):
            updates["default_scenario"] = GrowthScenario.parse(values["default_scenario"])
        if values.get("log_level"):
            level = str(values["log_level"]).upper()
            if level not in _LOG_LEVELS:
                raise ConfigError(f"{source}: unknown log_level {values['log_level']!r}")
            updates["log_level"] = level
        if values.get("request_timeout") is not None:
            updates["request_timeout"] = float(values["request_timeout"])
    except ConfigError:
        raise
    except (TypeError, ValueError, DividendTrackerError) as exc:
        raise ConfigError(f"{source}: {exc}") from exc
    return replace(settings, **updates)


def load_settings(data_dir: Optional[Path] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    environ = os.environ if environ is None else environ
    if data_dir is None:
        data_dir = Path(environ[DATA_DIR_ENV]) if environ.get(DATA_DIR_ENV) else DEFAULT_DATA_DIR
    settings = Settings(data_dir=Path(data_dir).expanduser())

    config_path = settings.data_dir / CONFIG_FILE
    if config_path.exists():
        try:
            with open(config_path, "rb") as fh:
                file_values = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid {config_path}: {exc}") from exc
        settings = _coerce(settings, file_values.get("dividend_tracker", file_values), str(config_path))

    env_values = {
        key: environ.get(f"DIVIDEND_TRACKER_{key.upper()}")
        for key in ("max_backups", "default_method", "default_scenario", "log_level", "request_timeout")
    }
    return _coerce(settings, env_values, "environment")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
