# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""JWT session state for user-level authentication.

After ``/jwt_auth`` sign-in the client authenticates with
``Authorization: Bearer {token}`` instead of SigV4.  The session tracks
when the token expires and when the server allows it to be refreshed.
All timestamps are epoch milliseconds.
"""

import base64
import binascii
import json
import logging
import time
from typing import Any

from paraclient.logging import SecretFilter


logger = logging.getLogger(__name__)

# Claims below this are epoch seconds, not milliseconds
_MILLIS_THRESHOLD = 10**12


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _to_millis(value: Any) -> int | None:
    value = _as_int(value)
    if value is None:
        return None
    return value * 1000 if value < _MILLIS_THRESHOLD else value


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """Decode the (unverified) claims of a JWT.

    Raises:
        ValueError: If the token is not a JWT with a JSON object payload.
    """
    parts = token.split(".")
    if len(parts) < 3:
        raise ValueError("Token is not a JWT")
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed JWT payload: {e}") from e
    if not isinstance(claims, dict):
        raise ValueError("JWT payload is not an object")
    return claims


class TokenSession:
    """Mutable JWT state owned by one client instance.

    Attributes:
        token_key: The JWT access token, or None when signed out.
        token_key_expires: Expiry time (ms).
        token_key_next_refresh: Earliest refresh time (ms).
    """

    def __init__(self) -> None:
        self.token_key: str | None = None
        self.token_key_expires: int | None = None
        self.token_key_next_refresh: int | None = None

    @property
    def is_signed_in(self) -> bool:
        return self.token_key is not None

    def set_access_token(self, token: str | None) -> None:
        """Store a token, reading ``exp`` and ``refresh`` from its claims.

        A token whose payload cannot be decoded is kept, but its expiry
        and refresh times are unknown.
        """
        if token and token.strip():
            try:
                claims = decode_jwt_payload(token)
            except ValueError:
                logger.debug("Could not decode JWT claims")
                self.token_key_expires = None
                self.token_key_next_refresh = None
            else:
                if "exp" in claims:
                    self.token_key_expires = _to_millis(claims.get("exp"))
                    self.token_key_next_refresh = _to_millis(
                        claims.get("refresh")
                    )
            SecretFilter.register_secret(token)
        self.token_key = token

    def apply_auth_response(self, result: Any) -> bool:
        """Update the session from a ``/jwt_auth`` response.

        Args:
            result: Decoded JSON, expected to contain ``user`` and
                ``jwt`` with ``access_token``, ``expires``, ``refresh``.
                The times are epoch milliseconds and stored as given.

        Returns:
            True if the session now holds the new token.  Otherwise the
            session is cleared and False is returned.
        """
        jwt = result.get("jwt") if isinstance(result, dict) else None
        if (
            not isinstance(result, dict)
            or "user" not in result
            or not isinstance(jwt, dict)
            or not jwt.get("access_token")
        ):
            self.clear()
            return False

        self.token_key = str(jwt["access_token"])
        self.token_key_expires = _as_int(jwt.get("expires"))
        self.token_key_next_refresh = _as_int(jwt.get("refresh"))
        SecretFilter.register_secret(self.token_key)
        return True

    def can_refresh(self, now: int | None = None) -> bool:
        """True if a token is held, not expired, and due for refresh."""
        if now is None:
            now = now_millis()
        expires = self.token_key_expires
        next_refresh = self.token_key_next_refresh
        if self.token_key is None or expires is None or expires <= now:
            return False
        if next_refresh is None:
            return False
        return next_refresh < now or next_refresh > expires

    def clear(self) -> None:
        """Forget the token."""
        self.token_key = None
        self.token_key_expires = None
        self.token_key_next_refresh = None

    def auth_secret(self, secret_key: str | None) -> str | None:
        """Secret to sign with: ``Bearer {token}`` while signed in."""
        if self.token_key is not None:
            return "Bearer " + self.token_key
        return secret_key
