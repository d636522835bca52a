# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for client configuration."""

from pathlib import Path
from unittest.mock import patch

import pytest

from paraclient.config import (
    DEFAULT_API_PATH,
    DEFAULT_ENDPOINT,
    ClientConfig,
    ConfigError,
    _coerce_bool,
    _EnvVar,
    _raw_resolve,
    _resolve,
    load_dotenv_once,
)
from paraclient.logging import SecretFilter


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "para.yaml"
    path.write_text(content)
    return path


class TestRawResolve:
    """Tests for _raw_resolve."""

    def test_literal_string(self) -> None:
        """Literal string values resolve to themselves."""
        assert _raw_resolve("hello") == "hello"

    def test_none(self) -> None:
        """None resolves to None."""
        assert _raw_resolve(None) is None

    def test_envvar_set(self) -> None:
        """EnvVar resolves to env value when set."""
        with patch.dict("os.environ", {"MY_VAR": "val"}):
            assert _raw_resolve(_EnvVar("MY_VAR")) == "val"

    def test_envvar_empty(self) -> None:
        """EnvVar resolves to None when env var is empty string."""
        with patch.dict("os.environ", {"EMPTY": ""}):
            assert _raw_resolve(_EnvVar("EMPTY")) is None


class TestCoerceBool:
    """Tests for _coerce_bool."""

    def test_truthy_strings(self) -> None:
        """Truthy string values are recognized."""
        for val in ("true", "True", "1", "yes", "on"):
            assert _coerce_bool(val) is True

    def test_falsy_strings(self) -> None:
        """Falsy string values are recognized."""
        for val in ("false", "FALSE", "0", "no", "off"):
            assert _coerce_bool(val) is False

    def test_invalid_raises(self) -> None:
        """Invalid values raise ConfigError."""
        with pytest.raises(ConfigError, match="Cannot convert"):
            _coerce_bool("maybe")


class TestResolve:
    """Tests for _resolve."""

    def test_float_from_int_literal(self) -> None:
        """YAML ints coerce to float."""
        assert _resolve(30, float) == 30.0

    def test_float_envvar(self) -> None:
        """Float !env resolves and coerces."""
        with patch.dict("os.environ", {"T": "2.5"}):
            assert _resolve(_EnvVar("T"), float) == 2.5

    def test_invalid_float(self) -> None:
        """Uncoercible values raise ConfigError."""
        with pytest.raises(ConfigError, match="Cannot convert"):
            _resolve("soon", float)

    def test_default(self) -> None:
        """Absent values take the default."""
        assert _resolve(None, str, default="x") == "x"

    def test_required_missing(self) -> None:
        """Required values raise when absent."""
        with pytest.raises(ConfigError, match="'access_key' is missing"):
            _resolve(None, str, required="access_key")

    def test_required_envvar_unset(self) -> None:
        """The error names the unset environment variable."""
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigError, match="'PARA_ACCESS_KEY'"):
                _resolve(
                    _EnvVar("PARA_ACCESS_KEY"), str, required="access_key"
                )


class TestClientConfig:
    """Tests for ClientConfig construction."""

    def test_defaults(self) -> None:
        """Only the access key is required."""
        config = ClientConfig(access_key="app:test")
        assert config.secret_key == ""
        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.api_path == DEFAULT_API_PATH
        assert config.double_encode_path is True
        assert config.timeout == 30.0

    def test_api_path_trailing_slash(self) -> None:
        """The API path always ends with a slash."""
        assert ClientConfig(access_key="a", api_path="/v2").api_path == "/v2/"

    def test_secret_registered_for_redaction(self) -> None:
        """The secret key is redacted from logs."""
        ClientConfig(access_key="a", secret_key="s3cr3t-key")
        assert "s3cr3t-key" in SecretFilter._secrets


class TestFromYaml:
    """Tests for ClientConfig.from_yaml."""

    @pytest.fixture(autouse=True)
    def _no_dotenv(self):
        with patch("paraclient.config.load_dotenv"):
            yield

    def test_full_config(self, tmp_path: Path) -> None:
        """All settings are read from the file."""
        path = _write(
            tmp_path,
            "access_key: app:test\n"
            "secret_key: abcdefgh\n"
            "endpoint: http://localhost:8080\n"
            "api_path: /v2\n"
            "double_encode_path: false\n"
            "timeout: 5\n",
        )
        config = ClientConfig.from_yaml(path)
        assert config == ClientConfig(
            access_key="app:test",
            secret_key="abcdefgh",
            endpoint="http://localhost:8080",
            api_path="/v2/",
            double_encode_path=False,
            timeout=5.0,
        )

    def test_env_tags(self, tmp_path: Path) -> None:
        """!env tags resolve from the environment."""
        path = _write(
            tmp_path,
            "access_key: !env TEST_PARA_ACCESS\n"
            "secret_key: !env TEST_PARA_SECRET\n"
            "double_encode_path: !env TEST_PARA_DOUBLE\n",
        )
        env = {
            "TEST_PARA_ACCESS": "app:env",
            "TEST_PARA_SECRET": "from-env-secret",
            "TEST_PARA_DOUBLE": "no",
        }
        with patch.dict("os.environ", env):
            config = ClientConfig.from_yaml(path)
        assert config.access_key == "app:env"
        assert config.secret_key == "from-env-secret"
        assert config.double_encode_path is False

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            ClientConfig.from_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Malformed YAML raises ConfigError."""
        path = _write(tmp_path, "access_key: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            ClientConfig.from_yaml(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        """The document must be a mapping."""
        path = _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            ClientConfig.from_yaml(path)

    def test_missing_access_key(self, tmp_path: Path) -> None:
        """The access key is required."""
        path = _write(tmp_path, "secret_key: x\n")
        with pytest.raises(ConfigError, match="access_key"):
            ClientConfig.from_yaml(path)

    def test_bad_bool(self, tmp_path: Path) -> None:
        """Unrecognized booleans raise ConfigError."""
        path = _write(tmp_path, "access_key: a\ndouble_encode_path: maybe\n")
        with pytest.raises(ConfigError, match="Cannot convert"):
            ClientConfig.from_yaml(path)


class TestFromEnv:
    """Tests for ClientConfig.from_env."""

    @pytest.fixture(autouse=True)
    def _no_dotenv(self):
        with patch("paraclient.config.load_dotenv"):
            yield

    def test_reads_prefixed_vars(self) -> None:
        """PARA_* variables populate the config."""
        env = {
            "PARA_ACCESS_KEY": "app:env",
            "PARA_SECRET_KEY": "secret-value",
            "PARA_ENDPOINT": "https://para.local",
            "PARA_TIMEOUT": "12",
        }
        with patch.dict("os.environ", env, clear=True):
            config = ClientConfig.from_env()
        assert config.access_key == "app:env"
        assert config.secret_key == "secret-value"
        assert config.endpoint == "https://para.local"
        assert config.api_path == DEFAULT_API_PATH
        assert config.timeout == 12.0

    def test_custom_prefix(self) -> None:
        """A custom prefix selects other variables."""
        with patch.dict("os.environ", {"X_ACCESS_KEY": "app:x"}, clear=True):
            assert ClientConfig.from_env("X_").access_key == "app:x"

    def test_missing_access_key(self) -> None:
        """An unset access key raises ConfigError."""
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigError, match="PARA_ACCESS_KEY"):
                ClientConfig.from_env()


class TestLoadDotenvOnce:
    """Tests for load_dotenv_once."""

    def test_loads_once(self, tmp_path: Path) -> None:
        """Repeated calls load the file only once."""
        env_file = tmp_path / ".env"
        env_file.write_text("X=1\n")
        with patch("paraclient.config.load_dotenv") as mock_load:
            load_dotenv_once(env_file)
            load_dotenv_once(env_file)
        mock_load.assert_called_once_with(env_file)
