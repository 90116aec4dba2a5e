"""
Logging utilities for the token broker.

Provides a consistent logging format and keeps bearer credentials out of log
output.
"""

import logging
import re
import sys

_REDACTED = "[REDACTED]"

_SECRET_PATTERNS = (
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9\-._~+/]+=*"),
    re.compile(
        r"""(?i)(["']?(?:access_token|refresh_token|accessToken|refreshToken)["']?\s*[:=]\s*["']?)[^"'\s,&}]+"""
    ),
)


def redact(message: str) -> str:
    """Mask bearer tokens and OAuth token values inside ``message``."""
    for pattern in _SECRET_PATTERNS:
        message = pattern.sub(lambda match: match.group(1) + _REDACTED, message)
    return message


class TokenRedactionFilter(logging.Filter):
    """Rewrite log records so OAuth credentials never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except Exception:  # pragma: no cover - malformed record, leave untouched
            return True
        cleaned = redact(rendered)
        if cleaned != rendered:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, TokenRedactionFilter) for f in handler.filters):
            handler.addFilter(TokenRedactionFilter())
    # httpx logs full request URLs at INFO, which can carry query-string secrets.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["TokenRedactionFilter", "configure_logging", "redact"]
