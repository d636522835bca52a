# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client configuration.

Configuration is loaded either from a YAML file with support for ``!env``
tags that resolve values from environment variables::

    access_key: app:myapp
    secret_key: !env PARA_SECRET_KEY
    endpoint: https://para.example.com
    double_encode_path: true

or directly from ``PARA_*`` environment variables.  A ``.env`` file is
loaded once before any environment lookup.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from paraclient.logging import SecretFilter


logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://paraio.com"
DEFAULT_API_PATH = "/v1/"
DEFAULT_TIMEOUT = 30.0

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})

_dotenv_loaded = False


class ConfigError(Exception):
    """Base exception for configuration errors."""


def load_dotenv_once(env_path: Path | None = None) -> None:
    """Load a .env file once, if not already loaded.

    Args:
        env_path: Explicit path to .env file. If None, python-dotenv
            searches from the current directory upwards.
    """
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    if env_path and env_path.exists():
        load_dotenv(env_path)
        logger.debug("Loaded .env from %s", env_path)
    else:
        load_dotenv()
    _dotenv_loaded = True


def reset_dotenv_state() -> None:
    """Reset the dotenv loaded state. For testing only."""
    global _dotenv_loaded
    _dotenv_loaded = False


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)  # type: ignore[arg-type]
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value resolution
# ---------------------------------------------------------------------------


def _coerce_bool(value: object) -> bool:
    """Coerce a value to bool, handling string representations."""
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is unset/empty.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name) or None
    if value is None:
        return None
    return str(value)


_MISSING = object()


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
    required: str = "",
) -> Any:
    """Resolve a config value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value (may be ``_EnvVar``, None, or a literal).
        coerce: Target type (``str``, ``float``, ``bool``).
        default: Default when value is absent.
        required: Human-readable field name.  When set, raises
            ``ConfigError`` if the value is absent.

    Returns:
        The resolved, coerced value, or None when optional and absent.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if coerce is bool:
            return _coerce_bool(value)
        if isinstance(value, coerce) and not isinstance(value, bool):
            return value

    resolved = _raw_resolve(value)

    if resolved is None:
        if required:
            if isinstance(value, _EnvVar):
                raise ConfigError(
                    f"Required config '{required}': environment variable "
                    f"'{value.var_name}' is not set"
                )
            raise ConfigError(f"Required config '{required}' is missing")
        if default is not _MISSING:
            return default
        return None

    if coerce is bool:
        return _coerce_bool(resolved)
    try:
        return coerce(resolved)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


# ---------------------------------------------------------------------------
# Client configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientConfig:
    """Para client settings.

    Attributes:
        access_key: App identifier, e.g. ``app:myapp``.
        secret_key: App secret key; empty for anonymous access.
        endpoint: Para server URL.
        api_path: API path prefix, always ending with ``/``.
        double_encode_path: Encode the resource path twice when building
            the canonical request (required by older servers).
        timeout: HTTP timeout in seconds.
    """

    access_key: str
    secret_key: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    api_path: str = DEFAULT_API_PATH
    double_encode_path: bool = True
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if not self.api_path.endswith("/"):
            object.__setattr__(self, "api_path", self.api_path + "/")
        SecretFilter.register_secret(self.secret_key)

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> "ClientConfig":
        """Build a config from a mapping whose values may be ``!env`` tags.

        Raises:
            ConfigError: If a required value is missing or invalid.
        """
        return cls(
            access_key=_resolve(
                raw.get("access_key"), str, required="access_key"
            ),
            secret_key=_resolve(raw.get("secret_key"), str, default=""),
            endpoint=_resolve(
                raw.get("endpoint"), str, default=DEFAULT_ENDPOINT
            ),
            api_path=_resolve(
                raw.get("api_path"), str, default=DEFAULT_API_PATH
            ),
            double_encode_path=_resolve(
                raw.get("double_encode_path"), bool, default=True
            ),
            timeout=_resolve(
                raw.get("timeout"), float, default=DEFAULT_TIMEOUT
            ),
        )

    @classmethod
    def from_yaml(
        cls, path: Path | str, *, env_path: Path | None = None
    ) -> "ClientConfig":
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML file.
            env_path: Optional .env file to load first.

        Raises:
            ConfigError: If the file is missing, malformed or incomplete.
        """
        load_dotenv_once(env_path)
        path = Path(path)
        try:
            with path.open() as f:
                raw = yaml.load(f, Loader=_make_loader())  # noqa: S506
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        config = cls.from_mapping(raw)
        logger.debug("Loaded client config from %s", path)
        return config

    @classmethod
    def from_env(
        cls, prefix: str = "PARA_", *, env_path: Path | None = None
    ) -> "ClientConfig":
        """Load configuration from environment variables.

        Reads ``{prefix}ACCESS_KEY``, ``{prefix}SECRET_KEY``,
        ``{prefix}ENDPOINT``, ``{prefix}API_PATH``,
        ``{prefix}DOUBLE_ENCODE_PATH`` and ``{prefix}TIMEOUT``.

        Raises:
            ConfigError: If the access key is not set or a value is invalid.
        """
        load_dotenv_once(env_path)
        names = (
            "access_key",
            "secret_key",
            "endpoint",
            "api_path",
            "double_encode_path",
            "timeout",
        )
        raw = {name: _EnvVar(prefix + name.upper()) for name in names}
        return cls.from_mapping(raw)
