from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _harvest_event
from .utils import log_line

Entrypoint = Literal["cli", "api", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _harvest_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def _clamp(field_name: str, value: int, adjusted: int, *, entrypoint: Entrypoint) -> None:
    _harvest_event(
        "state",
        phase="config",
        context="runtime_validation",
        kind="config_adjustment",
        field=field_name,
        value=value,
        adjusted=adjusted,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {field_name}={value} out of range; clamping to {adjusted}.")
    setattr(config, field_name, adjusted)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (e.g., clamping growth knobs) are logged but do not
    raise.
    """

    if config.PROGRESS_BACKEND not in config.PROGRESS_BACKENDS:
        _raise_config_error(
            f"HARVEST_PROGRESS_BACKEND must be one of {', '.join(config.PROGRESS_BACKENDS)}.",
            entrypoint=entrypoint,
            error="unknown_progress_backend",
        )

    if config.SINK_BACKEND not in config.SINK_BACKENDS:
        _raise_config_error(
            f"HARVEST_SINK_BACKEND must be one of {', '.join(config.SINK_BACKENDS)}.",
            entrypoint=entrypoint,
            error="unknown_sink_backend",
        )

    if config.RUN_QUOTA < 0:
        _raise_config_error(
            "HARVEST_RUN_QUOTA must be non-negative.",
            entrypoint=entrypoint,
            error="run_quota_invalid",
        )

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
        )

    timeout_fields = [
        ("PLAYWRIGHT_NAV_TIMEOUT_SECONDS", config.PLAYWRIGHT_NAV_TIMEOUT_SECONDS),
        ("PLAYWRIGHT_SELECTOR_TIMEOUT_SECONDS", config.PLAYWRIGHT_SELECTOR_TIMEOUT_SECONDS),
        ("PANEL_TIMEOUT_MS", config.PANEL_TIMEOUT_MS),
        ("CLICK_TIMEOUT_MS", config.CLICK_TIMEOUT_MS),
        ("GENERATION_TIMEOUT_SECONDS", config.GENERATION_TIMEOUT_SECONDS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    if config.STABLE_ROUNDS < 1:
        _clamp("STABLE_ROUNDS", config.STABLE_ROUNDS, 1, entrypoint=entrypoint)

    if config.MAX_GROW_ROUNDS < 1:
        _clamp("MAX_GROW_ROUNDS", config.MAX_GROW_ROUNDS, 1, entrypoint=entrypoint)

    if config.MAX_CANDIDATES < 1:
        _clamp("MAX_CANDIDATES", config.MAX_CANDIDATES, 1, entrypoint=entrypoint)

    if config.LISTING_RETRY_BUDGET < 1:
        _clamp("LISTING_RETRY_BUDGET", config.LISTING_RETRY_BUDGET, 1, entrypoint=entrypoint)


__all__ = ["validate_runtime_config", "Entrypoint"]
