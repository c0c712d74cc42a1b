from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewaySettings:
    api_keys: frozenset[str] = field(default_factory=frozenset)


def _split_keys(raw: str) -> frozenset[str]:
    return frozenset(k.strip() for k in raw.split(",") if k.strip())


def load(path: str) -> GatewaySettings:
    """Build settings from a JSON file, then apply environment overrides.

    The file looks like ``{"api_keys": ["key-1", "key-2"]}``. A missing or
    unreadable file leaves the defaults in place. A non-empty ``API_KEYS``
    environment variable (comma-separated) replaces the file's key list.
    """
    keys: frozenset[str] = frozenset()
    p = Path(path)
    if not p.exists():
        logger.info("No settings file at %s, using defaults", path)
    else:
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
            raw_keys = data.get("api_keys", [])
            if isinstance(raw_keys, list):
                keys = frozenset(str(k) for k in raw_keys if str(k))
                logger.info("Loaded settings from %s", path)
            else:
                logger.error(
                    "api_keys in %s must be a list, got %s; no keys loaded",
                    path, type(raw_keys).__name__,
                )
        except Exception:
            logger.exception("Failed to load settings from %s, using defaults", path)

    env_keys = os.getenv("API_KEYS", "")
    if env_keys.strip():
        keys = _split_keys(env_keys)

    if not keys:
        logger.warning("No API keys configured; every protected request will be rejected")
    return GatewaySettings(api_keys=keys)
