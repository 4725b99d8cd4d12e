import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
run_id_var: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
playlist_var: ContextVar[Optional[str]] = ContextVar('playlist', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)

ROOT_LOGGER_NAME = 'spotify2jspf'
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        run_id = run_id_var.get()
        playlist = playlist_var.get()
        stage = stage_var.get()
        if run_id:
            log_entry['runId'] = run_id
        if playlist is not None:
            log_entry['playlist'] = playlist
        if stage:
            log_entry['stage'] = stage

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'fields') and record.fields:
            log_entry['fields'] = record.fields

        return json.dumps(log_entry, ensure_ascii=False)


class CorrelationContext:
    """Context manager for correlation data."""

    def __init__(self, run_id: Optional[str] = None,
                 playlist: Optional[str] = None,
                 stage: Optional[str] = None):
        self.run_id = run_id
        self.playlist = playlist
        self.stage = stage
        self._tokens = []

    def __enter__(self):
        """Set correlation context."""
        if self.run_id is not None:
            self._tokens.append((run_id_var, run_id_var.set(self.run_id)))
        if self.playlist is not None:
            self._tokens.append((playlist_var, playlist_var.set(self.playlist)))
        if self.stage is not None:
            self._tokens.append((stage_var, stage_var.set(self.stage)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  json_format: bool = False,
                  run_id: Optional[str] = None) -> logging.Logger:
    """Configure the package logger.

    Human-readable lines go to stderr by default; json_format switches every
    handler to StructuredFormatter.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    formatter: logging.Formatter
    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if run_id:
        run_id_var.set(run_id)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional fields."""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    merged: Dict[str, Any] = {}
    if fields:
        merged.update(fields)
    merged.update(kwargs)

    # Fields are shown inline for the text formatter and kept structured for JSON
    if merged:
        suffix = " ".join(f"{k}={v}" for k, v in merged.items())
        logger.log(levelno, f"{message} ({suffix})", extra={'fields': merged})
    else:
        logger.log(levelno, message)


def log_playlist_start(logger: logging.Logger, playlist: str, track_count: int, **kwargs):
    """Log playlist processing start."""
    with CorrelationContext(playlist=playlist, stage='playlist_start'):
        log_with_fields(logger, 'INFO', f"Converting playlist '{playlist}'", {
            'track_count': track_count,
            **kwargs
        })


def log_playlist_complete(logger: logging.Logger, playlist: str,
                          resolved_count: int, total_count: int, **kwargs):
    """Log playlist completion with the resolved-vs-total count."""
    with CorrelationContext(playlist=playlist, stage='playlist_complete'):
        log_with_fields(logger, 'INFO',
                        f"Playlist '{playlist}': resolved {resolved_count}/{total_count} tracks", {
                            'resolved': resolved_count,
                            'total': total_count,
                            **kwargs
                        })


def log_track_unresolved(logger: logging.Logger, artist: str, title: str, uri: str, reason: str):
    """Log a track that could not be mapped to a recording."""
    log_with_fields(logger, 'WARNING', f"Failed to map '{artist} - {title}'", {
        'uri': uri,
        'reason': reason,
    })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    logger.error(message, exc_info=error, extra={'fields': {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    }})
