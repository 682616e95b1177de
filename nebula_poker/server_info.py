"""
Server information and configuration for Nebula Poker.
Values come from the process environment first, then from a .env file.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict

from dotenv import dotenv_values

from .version import get_version_info


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    server_name: str = "Nebula Poker Server"
    server_env: str = "Development"
    ai_turn_delay: float = 0.7
    min_players_to_start: int = 3
    small_blind: int = 50
    big_blind: int = 100


def load_env_file(filepath: str = ".env") -> Dict[str, str]:
    """Load variables from a .env file (missing file -> empty dict)."""
    return {k: v for k, v in dotenv_values(filepath).items() if v is not None}


def _lookup(key: str, env_vars: Dict[str, str], default: Any, cast: Callable[[str], Any] = str) -> Any:
    raw = os.getenv(key) or env_vars.get(key)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logging.warning(f"Invalid value for {key}: {raw!r}, using {default!r}")
        return default


def get_settings(filepath: str = ".env") -> Settings:
    env_vars = load_env_file(filepath)
    defaults = Settings()
    return Settings(
        host=_lookup('SERVER_HOST', env_vars, defaults.host),
        port=_lookup('SERVER_PORT', env_vars, defaults.port, int),
        server_name=_lookup('SERVER_NAME', env_vars, defaults.server_name),
        server_env=_lookup('SERVER_ENV', env_vars, defaults.server_env),
        ai_turn_delay=_lookup('AI_TURN_DELAY', env_vars, defaults.ai_turn_delay, float),
        min_players_to_start=_lookup('MIN_PLAYERS_TO_START', env_vars, defaults.min_players_to_start, int),
        small_blind=_lookup('SMALL_BLIND', env_vars, defaults.small_blind, int),
        big_blind=_lookup('BIG_BLIND', env_vars, defaults.big_blind, int),
    )


def get_server_info(filepath: str = ".env") -> Dict[str, Any]:
    """Get complete server information including version and environment details"""
    settings = get_settings(filepath)
    return {
        'server_env': settings.server_env,
        'server_host': settings.host,
        'server_port': settings.port,
        'server_name': settings.server_name,
        'websocket_url': f"ws://{settings.host}:{settings.port}/ws",
        **get_version_info()
    }
