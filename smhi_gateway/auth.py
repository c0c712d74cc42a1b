from __future__ import annotations

import enum
import logging
from typing import Iterable, Mapping

from fastapi import Request
from fastapi.responses import PlainTextResponse

from smhi_gateway.config import API_KEY_HEADER, DOC_PATH_PREFIXES

logger = logging.getLogger(__name__)


class AuthResult(enum.Enum):
    ALLOWED = "allowed"
    UNAUTHORIZED = "unauthorized"  # no key sent
    FORBIDDEN = "forbidden"        # key sent but not accepted


class ApiKeyGate:
    """Static pre-shared key check.

    Documentation paths are open. Everything else needs a header whose value
    is one of the configured keys. An empty key set rejects every key.
    """

    def __init__(
        self,
        valid_keys: Iterable[str],
        bypass_prefixes: Iterable[str] = DOC_PATH_PREFIXES,
        header: str = API_KEY_HEADER,
    ) -> None:
        self.valid_keys = frozenset(valid_keys)
        self.bypass_prefixes = tuple(p.lower() for p in bypass_prefixes)
        self.header = header

    def check(self, path: str, headers: Mapping[str, str]) -> AuthResult:
        if path.lower().startswith(self.bypass_prefixes):
            return AuthResult.ALLOWED
        provided = headers.get(self.header)
        if provided is None:
            return AuthResult.UNAUTHORIZED
        if provided not in self.valid_keys:
            return AuthResult.FORBIDDEN
        return AuthResult.ALLOWED

    def rejection(self, result: AuthResult) -> PlainTextResponse | None:
        """HTTP response for a rejected request, None when allowed."""
        if result is AuthResult.UNAUTHORIZED:
            return PlainTextResponse(
                f"API key is required. Provide it via {self.header} header.",
                status_code=401,
            )
        if result is AuthResult.FORBIDDEN:
            return PlainTextResponse("Invalid API key.", status_code=403)
        return None

    def guard(self, request: Request) -> PlainTextResponse | None:
        result = self.check(request.url.path, request.headers)
        if result is not AuthResult.ALLOWED:
            logger.info("Rejected %s %s: %s", request.method, request.url.path, result.value)
        return self.rejection(result)
