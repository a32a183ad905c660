"""Runtime settings for the session controller.

Values are resolved in three layers: dataclass defaults, an optional YAML
file, then ``OZON_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from ozon_scout.retailers.ozon import BASE_URL

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_BLOCK_SIGNATURES = ("antibot", "ограничен", "access denied")

_FALSE_VALUES = {"0", "false", "no", "off"}


class SessionPolicy(str, Enum):
    """Lifecycle policy for the browser session."""

    LONG_LIVED = "long_lived"
    PER_OPERATION = "per_operation"


@dataclass(frozen=True)
class ClientSettings:
    policy: SessionPolicy = SessionPolicy.PER_OPERATION
    home_url: str = f"{BASE_URL}/"
    headless: bool = True
    stealth: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "ru-RU"
    timezone_id: str = "Europe/Moscow"
    viewport_width: int = 1920
    viewport_height: int = 1080
    nav_timeout_ms: int = 90_000
    home_settle_ms: int = 10_000
    target_settle_ms: int = 15_000
    warmup_ttl_s: float = 300.0
    block_retries: int = 1
    pacing_min_ms: int = 2_000
    pacing_max_ms: int = 5_000
    block_signatures: tuple[str, ...] = field(default=DEFAULT_BLOCK_SIGNATURES)
    proxy: str | None = None
    health_log: str | None = None

    def __post_init__(self) -> None:
        # Frozen dataclass: normalise through object.__setattr__.
        if not isinstance(self.policy, SessionPolicy):
            object.__setattr__(self, "policy", SessionPolicy(str(self.policy).strip().lower()))
        if isinstance(self.block_signatures, str):
            object.__setattr__(self, "block_signatures", _split_csv(self.block_signatures))
        else:
            object.__setattr__(self, "block_signatures", tuple(self.block_signatures))
        if self.block_retries < 0:
            object.__setattr__(self, "block_retries", 0)
        if self.pacing_min_ms < 0:
            object.__setattr__(self, "pacing_min_ms", 0)
        if self.pacing_max_ms < self.pacing_min_ms:
            object.__setattr__(self, "pacing_max_ms", self.pacing_min_ms)

    def is_block_title(self, title: str | None) -> bool:
        """Return True when *title* matches one of the configured block signatures."""

        if not title:
            return False
        lowered = title.lower()
        return any(signature.lower() in lowered for signature in self.block_signatures if signature)

    def with_overrides(self, **overrides: Any) -> "ClientSettings":
        known = {item.name for item in fields(self)}
        return replace(self, **{key: value for key, value in overrides.items() if key in known and value is not None})


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(entry.strip() for entry in value.split(",") if entry.strip())


def _as_bool(value: str) -> bool:
    return value.strip().lower() not in _FALSE_VALUES


# env var -> (field name, converter)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
    "OZON_POLICY": ("policy", str),
    "OZON_HOME_URL": ("home_url", str),
    "OZON_HEADLESS": ("headless", _as_bool),
    "OZON_STEALTH": ("stealth", _as_bool),
    "OZON_USER_AGENT": ("user_agent", str),
    "OZON_LOCALE": ("locale", str),
    "OZON_TIMEZONE": ("timezone_id", str),
    "OZON_NAV_TIMEOUT_MS": ("nav_timeout_ms", int),
    "OZON_HOME_SETTLE_MS": ("home_settle_ms", int),
    "OZON_TARGET_SETTLE_MS": ("target_settle_ms", int),
    "OZON_WARMUP_TTL_S": ("warmup_ttl_s", float),
    "OZON_BLOCK_RETRIES": ("block_retries", int),
    "OZON_PACING_MIN_MS": ("pacing_min_ms", int),
    "OZON_PACING_MAX_MS": ("pacing_max_ms", int),
    "OZON_BLOCK_SIGNATURES": ("block_signatures", _split_csv),
    "OZON_PROXY": ("proxy", str),
    "OZON_HEALTH_LOG": ("health_log", str),
}


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, (field_name, convert) in _ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        try:
            overrides[field_name] = convert(raw.strip())
        except ValueError:
            continue
    return overrides


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    # Allow both a flat file and one nested under a "client" key.
    nested = data.get("client")
    return dict(nested) if isinstance(nested, dict) else data


def load_settings(
    path: str | Path | None = None,
    *,
    environ: dict[str, str] | None = None,
) -> ClientSettings:
    """Build settings from defaults, an optional YAML file and the environment."""

    env = dict(os.environ if environ is None else environ)
    values: dict[str, Any] = {}

    config_path = path or env.get("OZON_CONFIG")
    if config_path:
        values.update(_load_yaml(Path(config_path)))

    values.update(_env_overrides(env))
    return ClientSettings().with_overrides(**values)
