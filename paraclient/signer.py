# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS SigV4 request signing for the Para API.

Para authenticates API clients with AWS Signature Version 4, but against
a fixed credential scope: the service is always ``para`` and the region
is always ``us-east-1``, whatever host the server actually runs on.

Three authentication modes are selected from the secret key value:

- Anonymous: blank secret key, ``Authorization: Anonymous {access_key}``
- Signature: HMAC-SHA256 SigV4 over the canonical request
- Bearer: secret key starting with ``Bearer``, passed through verbatim

Signing never raises.  Encoding or URL problems are logged and the
request goes out unsigned, which the server answers with 401/403.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import urllib.parse
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


logger = logging.getLogger(__name__)

SERVICE_NAME = "para"
REGION_NAME = "us-east-1"
ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"

AUTHORIZATION = "Authorization"
X_AMZ_DATE = "X-Amz-Date"

_SHA256_EMPTY = hashlib.sha256(b"").hexdigest()

_AWS_DATE_FORMAT = "%Y%m%dT%H%M%SZ"

_AWS_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

_HTTP_METHODS = frozenset(
    {"GET", "PUT", "POST", "HEAD", "PATCH", "DELETE", "OPTIONS"}
)

# Never part of SignedHeaders
_UNSIGNED_HEADERS = frozenset({"connection", "x-amzn-trace-id"})

_DEFAULT_PORTS = {"http": 80, "https": 443}

#: Query parameters: a value may be a single item or a list of items.
Params = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def format_aws_date(instant: datetime) -> str:
    """Format a datetime in AWS basic ISO8601 form (``yyyyMMdd'T'HHmmss'Z'``).

    Naive datetimes are taken to be UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC).strftime(_AWS_DATE_FORMAT)


def parse_aws_date(value: str | None) -> datetime | None:
    """Parse an AWS basic ISO8601 timestamp.

    Args:
        value: Timestamp such as ``20240101T000000Z``.

    Returns:
        Timezone-aware UTC datetime, or None if the value is missing or
        not in exactly that format.
    """
    if not value or len(value) != 16:
        return None
    try:
        return datetime.strptime(value, _AWS_DATE_FORMAT).replace(tzinfo=UTC)
    except (ValueError, TypeError):
        return None


# ---------------------------------------------------------------------------
# URI encoding (AWS-specific RFC 3986 subset)
# ---------------------------------------------------------------------------


def _uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """URI-encode a value using AWS's specific rules.

    - Unreserved characters are not encoded: A-Z, a-z, 0-9, -, _, ., ~
    - Every other UTF-8 byte is percent-encoded as %XX (uppercase hex)
    - Forward slashes (/) are optionally preserved

    Args:
        value: String to encode.
        encode_slash: If True, encode '/'; if False, preserve '/'.

    Returns:
        URI-encoded string.
    """
    result: list[str] = []
    for ch in value:
        if ch in _AWS_UNRESERVED:
            result.append(ch)
        elif ch == "/" and not encode_slash:
            result.append("/")
        else:
            result.extend(f"%{b:02X}" for b in ch.encode("utf-8"))
    return "".join(result)


def encode_path(path: str) -> str:
    """Single-encode a resource path for the HTTP request line."""
    return _uri_encode(path, encode_slash=False)


def _join_path(base: str, resource_path: str) -> str:
    """Append a resource path to the endpoint's own path."""
    base = base.rstrip("/")
    if not resource_path:
        return base
    if not resource_path.startswith("/"):
        resource_path = "/" + resource_path
    return base + resource_path


# ---------------------------------------------------------------------------
# Canonical request construction
# ---------------------------------------------------------------------------


def canonical_uri(path: str, *, double_encode: bool = True) -> str:
    """Build canonical URI from a raw (unencoded) resource path.

    Para servers expect the path to be URI-encoded twice in the canonical
    request, so a space becomes ``%20`` and then ``%2520``.  Newer servers
    may expect single encoding; ``double_encode=False`` selects that.

    Args:
        path: Raw resource path, e.g. ``/v1/users/a b``.
        double_encode: Encode the path a second time.

    Returns:
        URI-encoded canonical path, ``/`` for an empty path.
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path

    encoded = _uri_encode(path, encode_slash=False)
    if double_encode:
        encoded = _uri_encode(encoded, encode_slash=False)
    return encoded


def _param_values(value: Any) -> list[str]:
    """Flatten a parameter value into a list of strings, dropping None."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def canonical_query_string(params: Params | None) -> str:
    """Build canonical query string.

    Keys and values are URI-encoded, then entries are sorted by encoded
    key and, within a key, by encoded value.

    Args:
        params: Mapping of parameter name to a value or list of values.

    Returns:
        Canonical query string, empty if there are no parameters.
    """
    if not params:
        return ""

    encoded = [
        (_uri_encode(str(k)), _uri_encode(v))
        for k, value in params.items()
        for v in _param_values(value)
    ]
    encoded.sort()

    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_headers_string(
    headers: Mapping[str, str], signed_headers_list: list[str]
) -> str:
    """Build canonical headers string.

    Args:
        headers: Request headers (name -> value).
        signed_headers_list: List of signed header names (lowercase).

    Returns:
        Canonical headers string (each line: "name:value" + newline).
    """
    lines: list[str] = []
    lower_headers: dict[str, str] = {}
    for name, value in headers.items():
        lower_headers[name.lower()] = value

    for name in sorted(signed_headers_list):
        value = lower_headers.get(name, "")
        # Trim leading/trailing whitespace, collapse sequential spaces
        trimmed = " ".join(str(value).split())
        lines.append(f"{name}:{trimmed}\n")

    return "".join(lines)


def signed_header_names(headers: Mapping[str, str]) -> list[str]:
    """Return the sorted, lower-cased names of headers that get signed."""
    return sorted(
        {name.lower() for name in headers} - _UNSIGNED_HEADERS,
    )


def payload_hash(body: bytes | None) -> str:
    """SHA-256 hex digest of the body, or the empty-string hash."""
    if not body:
        return _SHA256_EMPTY
    return hashlib.sha256(body).hexdigest()


def build_canonical_request(
    method: str,
    path: str,
    params: Params | None,
    headers: Mapping[str, str],
    signed_headers: str,
    content_hash: str,
    *,
    double_encode: bool = True,
) -> str:
    """Build the canonical request string.

    Args:
        method: HTTP method.
        path: Raw request path (endpoint path plus resource path).
        params: Query parameters.
        headers: Request headers, including host and x-amz-date.
        signed_headers: Semicolon-separated signed header names.
        content_hash: Hex SHA-256 of the payload.
        double_encode: Encode the path twice.

    Returns:
        Canonical request string.
    """
    signed_list = signed_headers.split(";")

    return "\n".join(
        [
            method,
            canonical_uri(path, double_encode=double_encode),
            canonical_query_string(params),
            canonical_headers_string(headers, signed_list),
            signed_headers,
            content_hash,
        ]
    )


# ---------------------------------------------------------------------------
# SigV4 signing
# ---------------------------------------------------------------------------


def _hmac_sha256(key: bytes, msg: str | bytes) -> bytes:
    """HMAC-SHA256 helper."""
    if isinstance(msg, str):
        msg = msg.encode("utf-8")
    return hmac.new(key, msg, hashlib.sha256).digest()


def derive_signing_key(
    secret_key: str,
    date: str,
    region: str = REGION_NAME,
    service: str = SERVICE_NAME,
) -> bytes:
    """Derive the SigV4 signing key.

    Args:
        secret_key: Para app secret key.
        date: Date string (YYYYMMDD).
        region: Credential scope region.
        service: Credential scope service name.

    Returns:
        Derived signing key bytes.
    """
    k_date = _hmac_sha256(("AWS4" + secret_key).encode("utf-8"), date)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, TERMINATOR)


def credential_scope(date: str) -> str:
    """Credential scope (date/region/service/aws4_request)."""
    return f"{date}/{REGION_NAME}/{SERVICE_NAME}/{TERMINATOR}"


def build_string_to_sign(
    timestamp: str, scope: str, canonical_request: str
) -> str:
    """Build the SigV4 string to sign.

    Args:
        timestamp: ISO8601 basic timestamp (the X-Amz-Date value).
        scope: Credential scope.
        canonical_request: The canonical request string.

    Returns:
        String to sign.
    """
    return "\n".join(
        [
            ALGORITHM,
            timestamp,
            scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


def compute_signature(signing_key: bytes, string_to_sign: str) -> str:
    """Hex-encoded HMAC-SHA256 of the string to sign."""
    return hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def _normalize_method(method: str | None) -> str:
    method = (method or "").upper()
    return method if method in _HTTP_METHODS else "GET"


def _normalize_endpoint(endpoint: str | None) -> str:
    endpoint = endpoint or ""
    if not endpoint.startswith("http"):
        endpoint = "https://" + endpoint
    return endpoint


def _host_header(endpoint: str) -> tuple[str, str]:
    """Split an endpoint URL into (host header value, base path).

    Raises:
        ValueError: If the URL is malformed or has no host.
    """
    parts = urllib.parse.urlsplit(endpoint)
    if not parts.hostname:
        raise ValueError(f"Endpoint has no host: {endpoint!r}")
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        host = f"{host}:{port}"
    return host, parts.path


def _is_jwt(secret_key: str | None) -> bool:
    return bool(secret_key) and secret_key[:6].lower() == "bearer"


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------


@dataclass
class SignedRequest:
    """A request ready to dispatch.

    Attributes:
        method: HTTP method.
        url: Full URL with single-encoded path and query string.
        headers: Headers including authentication.
        body: JSON payload bytes, empty when there is no body.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class Signer:
    """SigV4 signer bound to the Para credential scope.

    The signer holds no per-request state, so one instance can be shared
    between threads.  A fixed signing time is passed explicitly as
    ``signing_date``.
    """

    def __init__(self, *, double_encode_path: bool = True) -> None:
        self.double_encode_path = double_encode_path

    def sign(
        self,
        method: str,
        endpoint: str,
        resource_path: str,
        headers: Mapping[str, str] | None,
        params: Params | None,
        body: bytes | None,
        access_key: str,
        secret_key: str,
        *,
        signing_date: datetime | None = None,
    ) -> dict[str, str]:
        """Sign a request using AWS signature V4.

        Caller-supplied ``host`` and ``x-amz-date`` headers are dropped;
        a parsable ``x-amz-date`` is used as the signing time when no
        ``signing_date`` is given.

        Args:
            method: GET/POST/PUT... etc.
            endpoint: The Para server location; ``https://`` is assumed
                when no scheme is given.
            resource_path: The resource path, e.g. ``/v1/users/123``.
            headers: Extra headers to sign.
            params: Query parameters.
            body: Raw request payload or None.
            access_key: The app's access key.
            secret_key: The app's secret key.
            signing_date: Fixed signing time.

        Returns:
            The remaining caller headers plus ``Authorization`` and
            ``X-Amz-Date``.  On failure, the caller's headers unsigned.
        """
        request_headers: dict[str, str] = {}
        override: datetime | None = None
        for name, value in (headers or {}).items():
            lower = name.lower()
            if lower == "x-amz-date":
                override = parse_aws_date(value)
            elif lower != "host":
                request_headers[name] = value

        if signing_date is None:
            signing_date = override or datetime.now(UTC)

        try:
            timestamp = format_aws_date(signing_date)
            date = timestamp[:8]
            host, base_path = _host_header(_normalize_endpoint(endpoint))

            canonical_headers = dict(request_headers)
            canonical_headers["host"] = host
            canonical_headers["x-amz-date"] = timestamp
            signed_headers = ";".join(signed_header_names(canonical_headers))

            creq = build_canonical_request(
                _normalize_method(method),
                _join_path(base_path, resource_path),
                params,
                canonical_headers,
                signed_headers,
                payload_hash(body),
                double_encode=self.double_encode_path,
            )
            scope = credential_scope(date)
            string_to_sign = build_string_to_sign(timestamp, scope, creq)
            signature = compute_signature(
                derive_signing_key(secret_key, date), string_to_sign
            )
        except (ValueError, UnicodeError) as e:
            logger.debug("Request signing failed, sending unsigned: %s", e)
            return dict(headers or {})

        logger.debug("Canonical request:\n%s", creq)
        request_headers[AUTHORIZATION] = (
            f"{ALGORITHM} Credential={access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        request_headers[X_AMZ_DATE] = timestamp
        return request_headers

    def sign_request(
        self,
        access_key: str | None,
        secret_key: str | None,
        method: str,
        endpoint_url: str,
        resource_path: str,
        headers: Mapping[str, str] | None = None,
        params: Params | None = None,
        body: bytes | None = None,
        *,
        signing_date: datetime | None = None,
    ) -> dict[str, str]:
        """Build the authentication headers for one request.

        Args:
            access_key: The app's access key.  Blank keys are a
                configuration error and the request is left unsigned.
            secret_key: The app's secret key, blank for anonymous access,
                or ``Bearer {jwt}``.
            method: The method (GET, POST...).
            endpoint_url: protocol://host:port
            resource_path: The API resource path relative to the endpoint.
            headers: Headers map.
            params: Parameters map.
            body: The JSON payload bytes, could be None.
            signing_date: Fixed signing time.

        Returns:
            Headers map containing the ``Authorization`` header.
        """
        method = _normalize_method(method)
        result = dict(headers or {})

        if not access_key or not access_key.strip():
            logger.error("Blank access key: %s %s", method, resource_path)
            return result

        if not secret_key or not secret_key.strip():
            logger.debug("Anonymous request: %s %s", method, resource_path)
            result[AUTHORIZATION] = f"Anonymous {access_key}"
            return result

        if _is_jwt(secret_key):
            result[AUTHORIZATION] = secret_key
            return result

        return self.sign(
            method,
            endpoint_url,
            resource_path,
            result,
            params,
            body,
            access_key,
            secret_key,
            signing_date=signing_date,
        )

    def invoke_signed_request(
        self,
        access_key: str | None,
        secret_key: str | None,
        method: str,
        endpoint_url: str,
        resource_path: str,
        headers: Mapping[str, str] | None = None,
        params: Params | None = None,
        body: Any = None,
        *,
        signing_date: datetime | None = None,
    ) -> SignedRequest:
        """Build and sign a request to an API endpoint.

        No network I/O happens here; the result is handed to a transport.

        Args:
            access_key: Access key.
            secret_key: Secret key or ``Bearer {jwt}``.
            method: The method (GET, POST...).
            endpoint_url: protocol://host:port
            resource_path: The API resource path relative to the endpoint.
            headers: Headers map.
            params: Parameters map, values may be lists.
            body: An object serialized to JSON for the payload, could be
                None.
            signing_date: Fixed signing time.

        Returns:
            The signed request.
        """
        method = _normalize_method(method)
        entity = json_bytes(body)

        path = resource_path or ""
        if path and not path.startswith("/"):
            path = "/" + path
        url = _normalize_endpoint(endpoint_url).rstrip("/") + encode_path(path)
        query = canonical_query_string(params)
        if query:
            url += "?" + query

        request_headers = dict(headers or {})
        if _is_jwt(secret_key):
            request_headers[AUTHORIZATION] = str(secret_key)
        else:
            signed = self.sign_request(
                access_key,
                secret_key,
                method,
                endpoint_url,
                resource_path,
                headers,
                params,
                entity,
                signing_date=signing_date,
            )
            for name in (AUTHORIZATION, X_AMZ_DATE):
                if name in signed:
                    request_headers[name] = signed[name]

        return SignedRequest(method, url, request_headers, entity)


def json_bytes(obj: Any) -> bytes:
    """Serialize an object to compact JSON bytes.

    Objects with a ``to_dict()`` method are serialized through it.  None
    and unserializable objects give an empty payload.
    """
    if obj is None:
        return b""
    try:
        return json.dumps(
            obj,
            separators=(",", ":"),
            default=_json_default,
        ).encode("utf-8")
    except (TypeError, ValueError):
        logger.error("Object could not be converted to JSON", exc_info=True)
        return b""


def _json_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not serializable")
