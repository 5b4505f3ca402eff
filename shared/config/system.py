from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from shared.logging.logger import get_logger

log = get_logger("shared.config.system")

_CONFIG_PATH = Path(__file__).parent / "system.json"


@dataclass
class EngineSettings:
    dedup_window_seconds: float = 10.0
    clan_only: bool = False
    auto_register_observed: bool = False
    outbound_timeout_seconds: float = 5.0
    max_pending_notifications: int = 100


@dataclass
class StorageSettings:
    state_dir: str = "data"


@dataclass
class WebhookSettings:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class DiscordSettings:
    bot_token: Optional[str] = None
    channel_id: Optional[int] = None
    webhook_url: Optional[str] = None
    admin_role_ids: List[int] = field(default_factory=list)


@dataclass
class SystemConfig:
    engine: EngineSettings = field(default_factory=EngineSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    webhook: WebhookSettings = field(default_factory=WebhookSettings)
    discord: DiscordSettings = field(default_factory=DiscordSettings)


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.info(f"system.json not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except Exception as e:
        log.warning(f"Failed to load system.json ({e}); using defaults")
        return {}


def _as_bool(value: Any, default: bool, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    if value is not None:
        log.warning(f"{name} must be boolean; defaulting to {default}")
    return default


def _as_number(value: Any, default: float, name: str, cast=float):
    if value is None:
        return default
    try:
        number = cast(value)
    except (TypeError, ValueError):
        log.warning(f"{name} must be numeric; defaulting to {default}")
        return default
    if number <= 0:
        log.warning(f"{name} must be positive; defaulting to {default}")
        return default
    return number


def _as_optional_int(value: Any, name: str) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        log.warning(f"{name} must be an integer id; ignoring")
        return None


def _load_engine(raw: Any) -> EngineSettings:
    raw = raw if isinstance(raw, dict) else {}
    defaults = EngineSettings()
    return EngineSettings(
        dedup_window_seconds=_as_number(
            raw.get("dedup_window_seconds"), defaults.dedup_window_seconds, "dedup_window_seconds"
        ),
        clan_only=_as_bool(raw.get("clan_only"), defaults.clan_only, "clan_only"),
        auto_register_observed=_as_bool(
            raw.get("auto_register_observed"),
            defaults.auto_register_observed,
            "auto_register_observed",
        ),
        outbound_timeout_seconds=_as_number(
            raw.get("outbound_timeout_seconds"),
            defaults.outbound_timeout_seconds,
            "outbound_timeout_seconds",
        ),
        max_pending_notifications=_as_number(
            raw.get("max_pending_notifications"),
            defaults.max_pending_notifications,
            "max_pending_notifications",
            cast=int,
        ),
    )


def _load_webhook(raw: Any) -> WebhookSettings:
    raw = raw if isinstance(raw, dict) else {}
    defaults = WebhookSettings()
    return WebhookSettings(
        enabled=_as_bool(raw.get("enabled"), defaults.enabled, "webhook.enabled"),
        host=str(raw.get("host") or defaults.host),
        port=_as_number(raw.get("port"), defaults.port, "webhook.port", cast=int),
    )


def _load_discord(raw: Any) -> DiscordSettings:
    raw = raw if isinstance(raw, dict) else {}
    role_ids = []
    for value in raw.get("admin_role_ids") or []:
        role_id = _as_optional_int(value, "discord.admin_role_ids")
        if role_id is not None:
            role_ids.append(role_id)
    return DiscordSettings(
        channel_id=_as_optional_int(raw.get("channel_id"), "discord.channel_id"),
        webhook_url=raw.get("webhook_url") or None,
        admin_role_ids=role_ids,
    )


def _apply_env(config: SystemConfig, env: Dict[str, str]) -> SystemConfig:
    if env.get("PORT"):
        config.webhook.port = _as_number(env["PORT"], config.webhook.port, "PORT", cast=int)
    if env.get("MADNESS_STATE_DIR"):
        config.storage.state_dir = env["MADNESS_STATE_DIR"]
    if env.get("MADNESS_CLAN_ONLY"):
        config.engine.clan_only = _as_bool(
            env["MADNESS_CLAN_ONLY"], config.engine.clan_only, "MADNESS_CLAN_ONLY"
        )
    if env.get("MADNESS_AUTO_REGISTER"):
        config.engine.auto_register_observed = _as_bool(
            env["MADNESS_AUTO_REGISTER"],
            config.engine.auto_register_observed,
            "MADNESS_AUTO_REGISTER",
        )
    if env.get("MADNESS_DEDUP_WINDOW"):
        config.engine.dedup_window_seconds = _as_number(
            env["MADNESS_DEDUP_WINDOW"],
            config.engine.dedup_window_seconds,
            "MADNESS_DEDUP_WINDOW",
        )

    config.discord.bot_token = env.get("DISCORD_BOT_TOKEN") or config.discord.bot_token
    channel = _as_optional_int(env.get("DISCORD_CHANNEL_ID"), "DISCORD_CHANNEL_ID")
    if channel is not None:
        config.discord.channel_id = channel
    config.discord.webhook_url = env.get("DISCORD_WEBHOOK_URL") or config.discord.webhook_url
    return config


def load_system_config(
    path: Path | str | None = None,
    env: Optional[Dict[str, str]] = None,
) -> SystemConfig:
    """
    Build settings from system.json, then apply environment overrides.

    Call load_dotenv() before this so .env values are visible in os.environ.
    """
    raw = _load_json(Path(path) if path else _CONFIG_PATH)
    storage_raw = raw.get("storage") if isinstance(raw.get("storage"), dict) else {}

    config = SystemConfig(
        engine=_load_engine(raw.get("engine")),
        storage=StorageSettings(
            state_dir=str(storage_raw.get("state_dir") or StorageSettings.state_dir)
        ),
        webhook=_load_webhook(raw.get("webhook")),
        discord=_load_discord(raw.get("discord")),
    )
    return _apply_env(config, dict(os.environ) if env is None else env)


__all__ = [
    "DiscordSettings",
    "EngineSettings",
    "StorageSettings",
    "SystemConfig",
    "WebhookSettings",
    "load_system_config",
]
