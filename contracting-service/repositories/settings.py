"""
Runtime configuration.

Reads settings from the environment, after loading `contracting-service/.env`
if present. Nothing here talks to the network.

Environment variables:
- CONTRACTING_ENV: development | staging | production (default: development)
- CONTRACTING_STORE: supabase | memory (default: supabase)
- SUPABASE_URL / SUPABASE_KEY: required when CONTRACTING_STORE=supabase
- DEGRADED_FALLBACK: allow the in-process fallback store when Supabase is
  unreachable (default: true; always off in production)
- PRICE_FEED_URL / PRICE_FEED_API_KEY / PRICE_FEED_TIMEOUT: upstream tariff
  price feed; the built-in reference quotes are used when the URL is unset
- VERIFICATION_APPROVAL_RATE / VERIFICATION_WORKERS: default verification
  policy and background executor size
- LOG_LEVEL: root log level (default: INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

STORE_SUPABASE = "supabase"
STORE_MEMORY = "memory"
ENV_PRODUCTION = "production"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True, slots=True)
class Settings:
    environment: str = "development"
    store_backend: str = STORE_SUPABASE
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    degraded_fallback: bool = True
    price_feed_url: Optional[str] = None
    price_feed_api_key: Optional[str] = None
    price_feed_timeout: float = 5.0
    verification_approval_rate: float = 0.9
    verification_workers: int = 4
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.store_backend not in (STORE_SUPABASE, STORE_MEMORY):
            raise RuntimeError(
                f"Invalid CONTRACTING_STORE: {self.store_backend!r}. Use 'supabase' or 'memory'."
            )
        if self.is_production and self.store_backend == STORE_MEMORY:
            raise RuntimeError(
                "CONTRACTING_STORE=memory is not allowed when CONTRACTING_ENV=production."
            )
        if not 0.0 <= self.verification_approval_rate <= 1.0:
            raise RuntimeError("VERIFICATION_APPROVAL_RATE must be between 0 and 1.")
        if self.verification_workers < 1:
            raise RuntimeError("VERIFICATION_WORKERS must be at least 1.")

    @property
    def is_production(self) -> bool:
        return self.environment == ENV_PRODUCTION

    @property
    def mock_mode(self) -> bool:
        """Explicitly configured disconnected mode (in-process store only)."""
        return self.store_backend == STORE_MEMORY

    @property
    def allows_degraded_fallback(self) -> bool:
        return self.degraded_fallback and not self.is_production


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment.

    Raises:
        RuntimeError: for missing Supabase credentials or invalid values.
    """

    env_path = env_file or Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    store_backend = os.getenv("CONTRACTING_STORE", STORE_SUPABASE).strip().lower()
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if store_backend == STORE_SUPABASE:
        if not supabase_url:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_URL. "
                "Set SUPABASE_URL to your Supabase project URL, or CONTRACTING_STORE=memory."
            )
        if not supabase_key:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_KEY. "
                "Set SUPABASE_KEY to your Supabase API key."
            )

    try:
        timeout = float(os.getenv("PRICE_FEED_TIMEOUT", "5.0"))
        approval_rate = float(os.getenv("VERIFICATION_APPROVAL_RATE", "0.9"))
        workers = int(os.getenv("VERIFICATION_WORKERS", "4"))
    except ValueError as e:
        raise RuntimeError(f"Invalid numeric configuration value: {e}") from e

    return Settings(
        environment=os.getenv("CONTRACTING_ENV", "development").strip().lower(),
        store_backend=store_backend,
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        degraded_fallback=_env_flag("DEGRADED_FALLBACK", True),
        price_feed_url=os.getenv("PRICE_FEED_URL") or None,
        price_feed_api_key=os.getenv("PRICE_FEED_API_KEY") or None,
        price_feed_timeout=timeout,
        verification_approval_rate=approval_rate,
        verification_workers=workers,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


__all__ = ["Settings", "load_settings", "STORE_SUPABASE", "STORE_MEMORY"]
