from __future__ import annotations

import os

SMHI_BASE_URL = os.getenv(
    "SMHI_BASE_URL", "https://opendata-download-metobs.smhi.se/"
)

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

SETTINGS_FILE = os.getenv("SETTINGS_FILE", "settings.json")

SERVER_HOST = "0.0.0.0"
SERVER_PORT = int(os.getenv("PORT", "8080"))

APP_VERSION = "1.0.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

API_KEY_HEADER = "X-API-Key"

# Paths that are served without an API key (lower-case, matched as prefixes)
DOC_PATH_PREFIXES = ("/openapi", "/scalar")
