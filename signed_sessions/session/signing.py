"""Signed session identifier codec.

The identifier travels in a cookie as ``s:<id>.<mac>``. The ``s:`` marker
flags the signed scheme; the MAC is checked against every configured secret
so secrets can be rotated (sign with the first, accept any).
"""

from __future__ import annotations

import hashlib
import logging
import warnings
from typing import Any, Mapping, Sequence
from urllib.parse import unquote

from itsdangerous import BadSignature, Signer
from starlette.datastructures import Headers
from starlette.requests import cookie_parser

logger = logging.getLogger(__name__)

SIGNED_PREFIX = "s:"
SALT = "signed_sessions.sid"


def _signer(secret: str) -> Signer:
    return Signer(
        secret,
        salt=SALT,
        key_derivation="hmac",
        digest_method=hashlib.sha256,
    )


def sign(value: str, secret: str) -> str:
    """Sign ``value`` with ``secret`` and add the ``s:`` marker."""
    return SIGNED_PREFIX + _signer(secret).sign(value).decode("utf-8")


def unsign(value: str, secrets: Sequence[str]) -> str | None:
    """Verify ``value`` against each secret in order; first match wins."""
    for secret in secrets:
        try:
            return _signer(secret).unsign(value).decode("utf-8")
        except BadSignature:
            continue
    return None


def decode(raw: str, secrets: Sequence[str]) -> str | None:
    """Decode a raw cookie value into a session identifier, or ``None``."""
    if not raw.startswith(SIGNED_PREFIX):
        logger.debug("cookie unsigned")
        return None

    value = unsign(raw[len(SIGNED_PREFIX):], secrets)
    if value is None:
        logger.debug("cookie signature invalid")
    return value


def get_session_id(
    scope: Mapping[str, Any], name: str, secrets: Sequence[str]
) -> str | None:
    """Read the session identifier for ``scope``.

    The ``Cookie`` header is authoritative. For compatibility with upstream
    cookie-parsing middleware, ``state["signed_cookies"]`` (already verified)
    and ``state["cookies"]`` (raw, re-verified here) are consulted when the
    header yields nothing. Both fallbacks are deprecated.
    """
    value: str | None = None

    header = Headers(scope=scope).get("cookie")
    if header:
        raw = cookie_parser(header).get(name)
        if raw:
            value = decode(unquote(raw), secrets)

    state = scope.get("state") or {}

    if not value and state.get("signed_cookies"):
        value = state["signed_cookies"].get(name)
        if value:
            warnings.warn(
                "session cookie should be available in the Cookie header",
                DeprecationWarning,
                stacklevel=2,
            )

    if not value and state.get("cookies"):
        raw = state["cookies"].get(name)
        if raw:
            value = decode(raw, secrets)
            if value:
                warnings.warn(
                    "session cookie should be available in the Cookie header",
                    DeprecationWarning,
                    stacklevel=2,
                )

    return value or None
