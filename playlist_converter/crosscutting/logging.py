import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
conversion_id_var: ContextVar[Optional[str]] = ContextVar('conversion_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)
track_index_var: ContextVar[Optional[int]] = ContextVar('track_index', default=None)

ROOT_LOGGER_NAME = 'playlist_converter'
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # Access and refresh tokens
            r'(?i)(access_?token|refresh_?token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # API keys
            r'(?i)(api_?key|developer_?key|key)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Client secrets
            r'(?i)(client_secret|secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # OAuth codes
            r'(?i)(code|authorization_code)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Bearer headers
            r'(?i)(bearer)[\s]+([a-zA-Z0-9\-_\.]{20,})',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern in self.compiled_patterns:
            def replace_match(match):
                prefix = match.group(1)
                secret = match.group(2)
                # Keep first 4 and last 4 characters, mask the rest
                if len(secret) > 8:
                    masked_secret = secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
                else:
                    masked_secret = '*' * len(secret)
                return f"{prefix}: {masked_secret}"

            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive values in a dictionary, by key name and by content."""
        if not data:
            return data

        masked_data = {}

        for key, value in data.items():
            if isinstance(value, str) and _is_secret_key(key):
                masked_data[key] = _mask_value(value)
            elif isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                    else self.mask_secrets(item) if isinstance(item, str)
                                    else item for item in value]
            else:
                masked_data[key] = value

        return masked_data


_SECRET_KEY_PATTERN = re.compile(r'(?i)(token|secret|password|api_?key|code)$')


def _is_secret_key(key: str) -> bool:
    return bool(_SECRET_KEY_PATTERN.search(str(key)))


def _mask_value(value: str) -> str:
    if len(value) > 8:
        return value[:4] + '*' * (len(value) - 8) + value[-4:]
    return '*' * len(value)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        conversion_id = conversion_id_var.get()
        stage = stage_var.get()
        track_index = track_index_var.get()

        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Add correlation fields if available
        if conversion_id:
            log_entry['conversionId'] = conversion_id
        if stage:
            log_entry['stage'] = stage
        if track_index is not None:
            log_entry['trackIndex'] = track_index

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if getattr(record, 'fields', None):
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False)


class MaskingTextFormatter(logging.Formatter):
    """Plain-text formatter that still masks secrets."""

    def __init__(self, fmt: str = TEXT_FORMAT):
        super().__init__(fmt)
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        return self.masker.mask_secrets(super().format(record))


class CorrelationContext:
    """Context manager for correlation data."""

    def __init__(self, conversion_id: Optional[str] = None,
                 stage: Optional[str] = None,
                 track_index: Optional[int] = None):
        """Initialize correlation context."""
        self.conversion_id = conversion_id
        self.stage = stage
        self.track_index = track_index
        self._tokens = []

    def __enter__(self):
        """Set correlation context."""
        if self.conversion_id is not None:
            self._tokens.append((conversion_id_var, conversion_id_var.set(self.conversion_id)))
        if self.stage is not None:
            self._tokens.append((stage_var, stage_var.set(self.stage)))
        if self.track_index is not None:
            self._tokens.append((track_index_var, track_index_var.set(self.track_index)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def set_stage(stage: Optional[str]) -> None:
    """Stamp the current pipeline stage onto subsequent log lines."""
    stage_var.set(stage)


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  json_format: bool = True) -> logging.Logger:
    """Configure the package logger with a console handler and an optional file handler."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    formatter = StructuredFormatter() if json_format else MaskingTextFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(getattr(logging, level.upper()), message, extra={'fields': merged})


def log_conversion_start(logger: logging.Logger, source_url: str, playlist_name: str, **kwargs):
    log_with_fields(logger, 'INFO', 'Conversion started', {
        'source_url': source_url,
        'playlist_name': playlist_name,
        **kwargs
    })


def log_conversion_complete(logger: logging.Logger, total: int, matched: int,
                            batch_failures: int, **kwargs):
    log_with_fields(logger, 'INFO', 'Conversion completed', {
        'total': total,
        'matched': matched,
        'batch_failures': batch_failures,
        **kwargs
    })
