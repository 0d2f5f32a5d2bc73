"""journal_import.config

Run settings for the import CLI.

Precedence, lowest to highest:
  1. ImportSettings defaults
  2. YAML config file (--config, else $JOURNAL_IMPORT_CONFIG)
  3. $JOURNAL_IMPORT_DB_DSN
  4. explicit CLI flags (applied by the caller via ImportSettings.override)

Example config file:

    db_dsn: "postgresql://localhost/journal"
    batch_size: 100
    yield_every: 250
    single_transaction: false
    max_busy_retries: 10
    busy_base_delay: 0.04
    lock_timeout_ms: 2000
    report_dir: "./artifacts/reports"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from journal_import.shared import ConfigError

ENV_DB_DSN = "JOURNAL_IMPORT_DB_DSN"
ENV_CONFIG = "JOURNAL_IMPORT_CONFIG"

_INT_KEYS = frozenset({"batch_size", "yield_every", "max_busy_retries", "lock_timeout_ms"})
_POSITIVE_INT_KEYS = frozenset({"batch_size", "yield_every"})


@dataclass(frozen=True)
class ImportSettings:
    db_dsn: str | None = None
    batch_size: int = 50
    yield_every: int = 250
    single_transaction: bool = False
    max_busy_retries: int = 10
    busy_base_delay: float = 0.04
    lock_timeout_ms: int = 2000
    report_dir: Path = Path("./artifacts/reports")

    def override(self, **values: Any) -> "ImportSettings":
        """Return a copy with every non-None value applied."""
        applied = {k: v for k, v in values.items() if v is not None}
        if not applied:
            return self
        validate_settings(applied)
        return replace(self, **_coerce(applied))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_settings(data: Mapping[str, Any]) -> None:
    """Raise ConfigError if data contains unknown keys or bad values."""
    known = {f.name for f in fields(ImportSettings)}
    unknown = set(data.keys()) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    for key in _INT_KEYS & set(data.keys()):
        val = data[key]
        if isinstance(val, bool) or not isinstance(val, int):
            raise ConfigError(f"'{key}' value '{val}' must be an integer.")
        if key in _POSITIVE_INT_KEYS and val < 1:
            raise ConfigError(f"'{key}' value {val} must be >= 1.")
        if val < 0:
            raise ConfigError(f"'{key}' value {val} must be >= 0.")

    if "busy_base_delay" in data:
        val = data["busy_base_delay"]
        if isinstance(val, bool) or not isinstance(val, (int, float)):
            raise ConfigError(f"'busy_base_delay' value '{val}' is not numeric.")
        if val < 0:
            raise ConfigError(f"'busy_base_delay' value {val} must be >= 0.")

    if "single_transaction" in data and not isinstance(data["single_transaction"], bool):
        raise ConfigError(
            f"'single_transaction' value '{data['single_transaction']}' must be true or false."
        )

    for key in ("db_dsn", "report_dir"):
        if key in data and not isinstance(data[key], (str, Path)):
            raise ConfigError(f"'{key}' value '{data[key]}' must be a string.")


def _coerce(data: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(data)
    if "busy_base_delay" in out:
        out["busy_base_delay"] = float(out["busy_base_delay"])
    if "report_dir" in out:
        out["report_dir"] = Path(out["report_dir"])
    return out


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config_file(yaml_path: Path) -> dict[str, Any]:
    """Load and validate a YAML settings file.

    Raises:
        ConfigError: If the file is not a mapping or has invalid values.
        FileNotFoundError: If the file does not exist.
    """
    try:
        data = yaml.safe_load(yaml_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {yaml_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("YAML root must be a mapping.")
    validate_settings(data)
    return _coerce(data)


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ImportSettings:
    """Build ImportSettings from defaults, the config file and the environment."""
    env = os.environ if environ is None else environ
    settings = ImportSettings()

    path = config_path or env.get(ENV_CONFIG)
    if path:
        settings = replace(settings, **load_config_file(Path(path)))

    env_dsn = env.get(ENV_DB_DSN)
    if env_dsn:
        settings = replace(settings, db_dsn=env_dsn)

    return settings
