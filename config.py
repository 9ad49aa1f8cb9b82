"""
Centralized configuration for the matchmaking lifecycle engine.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_float_list(env_var: str, default: list[float]) -> list[float]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return [float(x.strip()) for x in raw.split(",") if x.strip()]
    except ValueError:
        return default


def _parse_str_list(env_var: str, default: list[str]) -> list[str]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return [x.strip() for x in raw.split(",") if x.strip()]


DB_PATH = os.getenv("DB_PATH", "matchmaker.db")

# Queue inactivity threshold before the cleanup sweep cancels a queue
QUEUE_TIMEOUT_MINUTES = _parse_int("QUEUE_TIMEOUT_MINUTES", 10)
QUEUE_CLEANUP_INTERVAL_SECONDS = _parse_int("QUEUE_CLEANUP_INTERVAL_SECONDS", 300)  # 5 minutes
# Completed games whose players never accepted the result release them after this
COMPLETED_GAME_GRACE_MINUTES = _parse_int("COMPLETED_GAME_GRACE_MINUTES", 60)
CLEANUP_RUN_ON_STARTUP = _parse_bool("CLEANUP_RUN_ON_STARTUP", True)

# ELO settings
ELO_K_FACTOR = _parse_int("ELO_K_FACTOR", 32)
ELO_BASE_RATING = _parse_int("ELO_BASE_RATING", 1000)

# Clients play a reveal animation before trusting selected_map
MAP_REVEAL_DURATION_MS = _parse_int("MAP_REVEAL_DURATION_MS", 10_000)

# Storage deadlines
STORE_TIMEOUT_SECONDS = _parse_float("STORE_TIMEOUT_SECONDS", 5.0)
# Fixed backoff between retries of transient storage failures
STORE_RETRY_DELAYS = _parse_float_list("STORE_RETRY_DELAYS", [0.05, 0.2, 0.5])

# Map pools per game mode. Override with MAP_POOL_5V5=de_dust2,de_mirage,...
MAP_POOLS: dict[str, list[str]] = {
    "5v5": _parse_str_list(
        "MAP_POOL_5V5",
        [
            "de_ancient",
            "de_anubis",
            "de_dust2",
            "de_inferno",
            "de_mirage",
            "de_nuke",
            "de_overpass",
            "de_vertigo",
        ],
    ),
    "wingman": _parse_str_list(
        "MAP_POOL_WINGMAN",
        ["de_inferno", "de_nuke", "de_overpass", "de_vertigo", "de_assembly", "de_memento"],
    ),
    "3v3": _parse_str_list(
        "MAP_POOL_3V3",
        ["de_inferno", "de_nuke", "de_overpass", "de_vertigo", "de_dust2"],
    ),
    "1v1": _parse_str_list(
        "MAP_POOL_1V1",
        ["aim_map", "aim_redline", "de_dust2", "de_mirage"],
    ),
}
