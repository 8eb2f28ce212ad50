import logging
import re
import sys

from .settings import settings

_REDACTIONS = [
    (re.compile(r"AIza[0-9A-Za-z_\-]{10,}"), "[API_KEY_REDACTED]"),
    (re.compile(r"sk-[A-Za-z0-9_\-]{16,}"), "[API_KEY_REDACTED]"),
    (re.compile(r'"password":\s*"[^"]*"', re.IGNORECASE), '"password": "[REDACTED]"'),
    (re.compile(r"password[=:]\s*[^,\s}]*", re.IGNORECASE), "password=[REDACTED]"),
]


def redact(text: str) -> str:
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """Masks API keys and passwords in the final log message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(RedactingFilter())
