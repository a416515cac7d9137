"""
Structured Logging for the auth service

Console logging in text or JSON form with request-id correlation and
masking of credentials. Passwords, tokens, secrets and bearer values are
redacted from every record that passes through the configured handlers,
including exception text.
"""

import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import IO, Any

# Context variables for correlation tracking
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
account_id_var: ContextVar[int | None] = ContextVar("account_id", default=None)

MASK = "***MASKED***"


@dataclass
class SensitiveDataConfig:
    """Configuration for sensitive data masking."""

    # Key names whose values are always masked (matched as key suffixes)
    key_patterns: list[str] = field(
        default_factory=lambda: [
            r"password",
            r"passwd",
            r"token",
            r"secret",
            r"authorization",
            r"api[_-]?key",
            r"cookie",
        ]
    )

    # Free-standing values masked wherever they appear
    value_patterns: list[str] = field(
        default_factory=lambda: [
            r"(?i:bearer)\s+[A-Za-z0-9\-._~+/]+=*",
            r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+",
        ]
    )

    mask_replacement: str = MASK


class SensitiveDataMasker:
    """Masks sensitive data in log messages and structured fields."""

    def __init__(self, config: SensitiveDataConfig | None = None) -> None:
        self.config = config or SensitiveDataConfig()
        keys = "|".join(self.config.key_patterns)
        self._key_name = re.compile(rf"^[\w-]*(?:{keys})$", re.IGNORECASE)
        # key:value, key=value, "key": "value" and 'key': 'value' pairs
        self._pair = re.compile(
            rf"""(?P<key>(?<![\w-])["']?[\w-]*(?:{keys})["']?\s*[:=]\s*)"""
            rf"""(?P<value>"[^"]*"|'[^']*'|[^\s,&}}\]]+)""",
            re.IGNORECASE,
        )
        self._values = [re.compile(pattern) for pattern in self.config.value_patterns]

    def mask_message(self, message: str) -> str:
        """Mask sensitive data in a log message."""
        if not message:
            return message
        masked = self._pair.sub(self._replace_pair, message)
        for pattern in self._values:
            masked = pattern.sub(self._replace_value, masked)
        return masked

    def mask_data(self, data: Any) -> Any:
        """Mask sensitive values in nested dicts and lists."""
        if isinstance(data, dict):
            return {
                key: (
                    self.config.mask_replacement
                    if isinstance(key, str) and self.is_sensitive_field(key) and value is not None
                    else self.mask_data(value)
                )
                for key, value in data.items()
            }
        if isinstance(data, (list, tuple)):
            return [self.mask_data(item) for item in data]
        if isinstance(data, str):
            return self.mask_message(data)
        return data

    def is_sensitive_field(self, field_name: str) -> bool:
        """Check if field name indicates sensitive data."""
        return bool(self._key_name.match(field_name))

    def _replace_pair(self, match: re.Match[str]) -> str:
        value = match.group("value")
        quote = value[0] if value[0] in "\"'" else ""
        return f"{match.group('key')}{quote}{self.config.mask_replacement}{quote}"

    def _replace_value(self, match: re.Match[str]) -> str:
        text = match.group(0)
        if text.lower().startswith("bearer"):
            return f"Bearer {self.config.mask_replacement}"
        return self.config.mask_replacement


_default_masker = SensitiveDataMasker()


def mask_sensitive_data(data: Any, masker: SensitiveDataMasker | None = None) -> Any:
    """Utility function to mask sensitive data in a string or structure."""
    masker = masker or _default_masker
    if isinstance(data, str):
        return masker.mask_message(data)
    return masker.mask_data(data)


class RedactionFilter(logging.Filter):
    """Masks the rendered message of every record and tags it with the request id."""

    def __init__(self, masker: SensitiveDataMasker | None = None) -> None:
        super().__init__()
        self.masker = masker or _default_masker

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.account_id = account_id_var.get()
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)
        record.msg = self.masker.mask_message(message)
        record.args = None
        return True


class MaskingFormatter(logging.Formatter):
    """Text formatter that masks the fully rendered line, tracebacks included."""

    def __init__(self, fmt: str | None = None, masker: SensitiveDataMasker | None = None) -> None:
        super().__init__(fmt or "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s")
        self.masker = masker or _default_masker

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get() or "-"
        return self.masker.mask_message(super().format(record))


class AuthJSONFormatter(logging.Formatter):
    """JSON formatter for structured logs."""

    _STANDARD_FIELDS = frozenset(
        {
            "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
            "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
            "created", "msecs", "relativeCreated", "thread", "threadName",
            "processName", "process", "message", "taskName", "request_id", "account_id",
        }
    )

    def __init__(self, masker: SensitiveDataMasker | None = None, sort_keys: bool = True) -> None:
        super().__init__()
        self.masker = masker or _default_masker
        self.sort_keys = sort_keys

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self.masker.mask_message(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = getattr(record, "request_id", None) or request_id_var.get()
        if request_id and request_id != "-":
            log_entry["request_id"] = request_id
        account_id = getattr(record, "account_id", None)
        if account_id is not None:
            log_entry["account_id"] = account_id

        # Add exception information
        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": self.masker.mask_message(str(record.exc_info[1]))
                if record.exc_info[1]
                else None,
                "traceback": self.masker.mask_message(self.formatException(record.exc_info)),
            }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_FIELDS and not key.startswith("_")
        }
        if extra:
            log_entry["extra"] = self.masker.mask_data(extra)

        return json.dumps(log_entry, sort_keys=self.sort_keys, default=str)


# Request ID management
def generate_request_id() -> str:
    """Generate a new request ID."""
    return f"req_{uuid.uuid4().hex}"


def get_request_id() -> str | None:
    """Get current request ID."""
    return request_id_var.get()


_HANDLER_MARKER = "_tarot_auth_handler"


def setup_logging(level: str = "INFO", format_type: str = "text", stream: IO[str] | None = None) -> None:
    """
    Setup logging for the auth service.

    Args:
        level: Logging level
        format_type: Formatter type ('json' or 'text')
        stream: Output stream, stdout by default
    """
    root_logger = logging.getLogger()

    # Replace handlers installed by an earlier call
    for handler in root_logger.handlers[:]:
        if getattr(handler, _HANDLER_MARKER, False):
            root_logger.removeHandler(handler)

    formatter: logging.Formatter
    if format_type == "json":
        formatter = AuthJSONFormatter()
    else:
        formatter = MaskingFormatter()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RedactionFilter())
    setattr(console_handler, _HANDLER_MARKER, True)

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info("Logging configured")
