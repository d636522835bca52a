# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Para API client.

Every call is built and signed by ``Signer.invoke_signed_request`` and
sent over one pooled ``httpx.Client``.  Error responses are logged and
returned as None; transport errors (``httpx.RequestError``) propagate.

Example:
    with ParaClient("app:myapp", secret_key) as client:
        print(client.get_timestamp())
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from paraclient.config import ClientConfig
from paraclient.constraints import Constraint
from paraclient.logging import SecretFilter
from paraclient.session import TokenSession
from paraclient.signer import Params, SignedRequest, Signer


logger = logging.getLogger(__name__)

JWT_PATH = "/jwt_auth"

_OK_STATUSES = frozenset({200, 201, 304})
_EMPTY_STATUSES = frozenset({204, 404})


class ParaClient:
    """Client for a Para server.

    Args:
        access_key: App access key, e.g. ``app:myapp``.
        secret_key: App secret key; blank for anonymous access.
        config: Optional settings; ``access_key``/``secret_key`` given
            here override the config's.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        access_key: str | None = None,
        secret_key: str | None = None,
        *,
        config: ClientConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if config is None:
            config = ClientConfig(access_key=access_key or "")
        if access_key is None:
            access_key = config.access_key
        if secret_key is None:
            secret_key = config.secret_key
        self.access_key = access_key
        self.secret_key = secret_key
        self.endpoint = config.endpoint
        self.api_path = config.api_path
        self.session = TokenSession()
        self.signer = Signer(double_encode_path=config.double_encode_path)
        self._http = httpx.Client(timeout=config.timeout, transport=transport)
        SecretFilter.register_secret(secret_key)

        if len(self.secret_key or "") < 6:
            logger.warning(
                "Secret key appears to be invalid. "
                "Make sure you call 'sign_in()' first."
            )

    def __enter__(self) -> ParaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._http.close()

    # ------------------------------------------------------------------
    # Endpoint and paths
    # ------------------------------------------------------------------

    def get_endpoint(self) -> str:
        return self.endpoint

    def set_endpoint(self, endpoint: str) -> None:
        self.endpoint = endpoint

    def get_api_path(self) -> str:
        return self.api_path

    def set_api_path(self, path: str) -> None:
        if not path.endswith("/"):
            path += "/"
        self.api_path = path

    def get_full_path(self, resource_path: str | None) -> str:
        """Prefix a resource path with the API path (except ``/jwt_auth``)."""
        if resource_path and resource_path.startswith(JWT_PATH):
            return resource_path
        resource_path = (resource_path or "").lstrip("/")
        return self.api_path + resource_path

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _key(self, refresh: bool) -> str | None:
        if self.session.is_signed_in and refresh:
            self.refresh_token()
        return self.session.auth_secret(self.secret_key)

    def _invoke(
        self,
        method: str,
        resource_path: str,
        *,
        params: Params | None = None,
        entity: Any = None,
        headers: Mapping[str, str] | None = None,
        refresh: bool = False,
    ) -> Any:
        request = self.signer.invoke_signed_request(
            self.access_key,
            self._key(refresh),
            method,
            self.endpoint,
            self.get_full_path(resource_path),
            headers,
            params,
            entity,
        )
        return self._send(request)

    def _send(self, request: SignedRequest) -> Any:
        headers = dict(request.headers)
        if request.body:
            headers.setdefault("Content-Type", "application/json")
        response = self._http.request(
            request.method,
            request.url,
            headers=headers,
            content=request.body or None,
        )
        return self._read_entity(request, response)

    def _read_entity(
        self, request: SignedRequest, response: httpx.Response
    ) -> Any:
        status = response.status_code
        if status in _OK_STATUSES:
            if not response.content:
                return None
            entity = _json_or_none(response)
            if entity is None:
                logger.error(
                    "Invalid JSON in response to %s %s",
                    request.method,
                    request.url,
                )
            return entity
        if status in _EMPTY_STATUSES:
            return None

        error = _json_or_none(response)
        if isinstance(error, dict) and "code" in error:
            logger.error(
                "%s %s failed: %s - %s",
                request.method,
                request.url,
                error.get("message", response.reason_phrase),
                error["code"],
            )
        else:
            logger.error(
                "%s %s failed: %s %s",
                request.method,
                request.url,
                status,
                response.reason_phrase,
            )
        return None

    def invoke_get(
        self, resource_path: str, params: Params | None = None
    ) -> Any:
        """GET a resource; refreshes the JWT first when it is due."""
        return self._invoke(
            "GET",
            resource_path,
            params=params,
            refresh=resource_path != JWT_PATH,
        )

    def invoke_post(self, resource_path: str, entity: Any = None) -> Any:
        return self._invoke("POST", resource_path, entity=entity)

    def invoke_put(self, resource_path: str, entity: Any = None) -> Any:
        return self._invoke("PUT", resource_path, entity=entity)

    def invoke_patch(self, resource_path: str, entity: Any = None) -> Any:
        return self._invoke("PATCH", resource_path, entity=entity)

    def invoke_delete(
        self, resource_path: str, params: Params | None = None
    ) -> Any:
        return self._invoke("DELETE", resource_path, params=params)

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def me(self) -> dict[str, Any] | None:
        """The authenticated user or app object."""
        return self.invoke_get("_me")

    def get_timestamp(self) -> int:
        """Server time in epoch milliseconds, 0 when unavailable."""
        ts = self.invoke_get("utils/timestamp")
        return ts if isinstance(ts, int) and not isinstance(ts, bool) else 0

    def get_server_version(self) -> str:
        res = self.invoke_get("")
        if isinstance(res, dict) and res.get("version"):
            return str(res["version"])
        return "unknown"

    def add_validation_constraint(
        self, type_name: str, field: str, constraint: Constraint
    ) -> dict[str, Any] | None:
        """Add a validation constraint to a field of a type.

        Returns:
            All constraints for the type as returned by the server.
        """
        if not type_name or not field:
            return {}
        return self.invoke_put(
            f"_constraints/{type_name}/{field}/{constraint.name}",
            constraint.payload,
        )

    # ------------------------------------------------------------------
    # JWT authentication
    # ------------------------------------------------------------------

    def get_access_token(self) -> str | None:
        """The JWT access token, or None if not signed in."""
        return self.session.token_key

    def set_access_token(self, token: str | None) -> None:
        self.session.set_access_token(token)

    def sign_in(
        self, provider: str, provider_token: str
    ) -> dict[str, Any] | None:
        """Exchange an identity provider token for a Para JWT.

        Args:
            provider: Identity provider, e.g. ``facebook``, ``password``.
            provider_token: Access token from that provider.

        Returns:
            The user object, or None if sign-in failed.
        """
        if not provider or not provider_token:
            return None
        credentials = {
            "appid": self.access_key,
            "provider": provider,
            "token": provider_token,
        }
        result = self.invoke_post(JWT_PATH, credentials)
        if self.session.apply_auth_response(result):
            return result["user"]
        logger.info("Sign in with provider '%s' failed", provider)
        return None

    def sign_out(self) -> None:
        """Clear the JWT from memory; the token is not revoked."""
        self.session.clear()

    def refresh_token(self) -> bool:
        """Refresh the JWT if the server allows it.

        Returns:
            True if a new token was obtained.  A failed refresh clears
            the session.
        """
        if not self.session.can_refresh():
            return False
        result = self.invoke_get(JWT_PATH)
        return self.session.apply_auth_response(result)

    def revoke_all_tokens(self) -> bool:
        """Revoke all tokens of the signed-in user ("logout everywhere")."""
        return self.invoke_delete(JWT_PATH) is not None


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
