# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging configuration with credential redaction.

Library modules log through module-level loggers and never install
handlers.  Applications that embed the client call
``configure_logging()`` once; secret keys and JWTs the client handles
are registered with ``SecretFilter`` and show up as ``[REDACTED]``.

Usage:
    from paraclient.logging import configure_logging
    configure_logging(level=logging.DEBUG)
"""

import logging
import re
from typing import ClassVar


REDACTED = "[REDACTED]"


class SecretFilter(logging.Filter):
    """Logging filter that redacts registered secrets from log output.

    Example:
        SecretFilter.register_secret("my-secret-key")
        logger.info("Using key: my-secret-key")
        # Output: "Using key: [REDACTED]"
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact any registered secrets in the record.

        Returns:
            Always True (record is never suppressed, only modified).
        """
        if self._pattern is not None:
            record.msg = self._pattern.sub(REDACTED, str(record.msg))
            if record.args:
                record.args = tuple(
                    self._pattern.sub(REDACTED, str(arg))
                    if isinstance(arg, str)
                    else arg
                    for arg in record.args
                )
        return True

    @classmethod
    def register_secret(cls, secret: str | None) -> None:
        """Register a secret to be redacted from all log output.

        Empty values and ``None`` are ignored.  A ``Bearer `` prefix is
        stripped so the bare token is what gets matched.
        """
        if not secret:
            return
        if secret[:7].lower() == "bearer ":
            secret = secret[7:]
        if secret.strip():
            cls._secrets.add(secret)
            cls._rebuild_pattern()

    @classmethod
    def clear_secrets(cls) -> None:
        """Clear all registered secrets. Primarily for testing."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def _rebuild_pattern(cls) -> None:
        if cls._secrets:
            # Longest first
            ordered = sorted(cls._secrets, key=len, reverse=True)
            escaped = [re.escape(s) for s in ordered]
            cls._pattern = re.compile("|".join(escaped))
        else:
            cls._pattern = None


DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    add_secret_filter: bool = True,
) -> None:
    """Route log output of an application embedding the client to stderr.

    Replaces any handlers already on the root logger, so calling this
    twice leaves a single handler.

    Args:
        level: Root logger level; ``logging.DEBUG`` shows canonical
            requests.
        format_string: Record format, ``DEFAULT_FORMAT`` when None.
        add_secret_filter: Redact registered secret keys and JWTs.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    if add_secret_filter:
        handler.addFilter(SecretFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
