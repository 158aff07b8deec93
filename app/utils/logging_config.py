"""Structured logging configuration for production monitoring."""

import json
import logging
import os
import re
import tempfile
import time
from logging.handlers import TimedRotatingFileHandler
from time import perf_counter
from typing import Optional

from sqlalchemy import event

_CPF_RE = re.compile(r"\b(\d{3})\.?\d{3}\.?\d{3}-?(\d{2})\b")


class MessageContainsFilter(logging.Filter):
    """Allow records that contain the configured substring."""

    def __init__(self, substring: str):
        super().__init__()
        self.substring = substring

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:  # pylint: disable=broad-except
            return False
        return self.substring in message


class JsonFormatter(logging.Formatter):
    """JSON formatter for cleaner machine-parsable logs."""

    EXTRA_FIELDS = (
        "request_id",
        "user_id",
        "username",
        "action_type",
        "resource_type",
        "resource_id",
        "ip_address",
        "old_values",
        "new_values",
    )

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                payload[field] = getattr(record, field)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class SafeTimedRotatingFileHandler(TimedRotatingFileHandler):
    """TimedRotatingFileHandler that tolerates Windows file-lock rollover failures.

    When another process holds the file open the rename fails with WinError 32;
    rollover is skipped for this interval and the base file is reopened.
    """

    def doRollover(self) -> None:  # type: ignore[override]
        try:
            super().doRollover()
        except PermissionError as exc:
            if getattr(exc, "winerror", None) != 32:
                raise

            try:
                self.stream = self._open()
            except OSError:
                self.stream = None

            self.rolloverAt = int(time.time()) + self.interval


def mask_cpf(value: str) -> str:
    """Mask CPF numbers found in ``value`` keeping only the edges (``123.***.***-09``)."""
    return _CPF_RE.sub(lambda m: f"{m.group(1)}.***.***-{m.group(2)}", value or "")


def _clear_logger_handlers(logger_name: str) -> logging.Logger:
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger


def _resolve_log_dir(app) -> str:
    """Resolve a writable log directory, with fallback when the primary is unavailable."""
    log_dir = app.config.get("APP_LOG_DIR") or os.getenv("APP_LOG_DIR")
    if not log_dir:
        root_dir = os.path.abspath(os.path.join(app.root_path, ".."))
        log_dir = os.path.join(root_dir, "logs")

    try:
        os.makedirs(log_dir, exist_ok=True)
        test_path = os.path.join(log_dir, ".write-test")
        with open(test_path, "w", encoding="utf-8") as test_file:
            test_file.write("ok")
        os.remove(test_path)
        return log_dir
    except OSError:
        fallback_dir = os.path.join(tempfile.gettempdir(), "portal-societario-logs")
        os.makedirs(fallback_dir, exist_ok=True)
        return fallback_dir


def _daily_handler(path: str, level: int, formatter: logging.Formatter, backup_count: int) -> SafeTimedRotatingFileHandler:
    handler = SafeTimedRotatingFileHandler(
        path,
        when='midnight',
        interval=1,
        backupCount=backup_count,
        encoding='utf-8',
        delay=True,
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _register_slow_query_listener(engine, slow_query_logger: logging.Logger, threshold_ms: float) -> None:
    """Attach SQLAlchemy event listeners to emit slow queries to the dedicated logger."""

    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = getattr(context, "_query_start_time", None)
        if start is None:
            return
        duration_ms = (perf_counter() - start) * 1000
        if duration_ms < threshold_ms:
            return
        slow_query_logger.warning(
            statement.replace("\n", " "),
            extra={
                "duration": duration_ms / 1000,  # formatter expects seconds
                "statement": statement,
            },
        )


def setup_logging(app, engine: Optional[object] = None):
    """Configure structured logging with rotation.

    Creates logs in the 'logs' directory (or ``APP_LOG_DIR``) with:
    - app.log / app.jsonl: General application logs (rotated daily, keeps 60 days)
    - error.log: Error-level logs only (rotated daily, keeps 90 days)
    - slow_requests.log: Extracted slow requests (rotated daily, keeps 60 days)
    - slow_queries.log: Database queries above SLOW_QUERY_THRESHOLD_MS (rotated weekly)
    - user_actions.log / user_actions.jsonl: audit trail of user actions (keeps 180 days)
    """
    log_dir = _resolve_log_dir(app)
    level = getattr(logging, str(app.config.get("LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO"))).upper(), logging.INFO)

    app.logger.handlers.clear()
    app.logger.setLevel(level)

    text_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s (%(funcName)s:%(lineno)d): %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    json_formatter = JsonFormatter()

    app.logger.addHandler(_daily_handler(os.path.join(log_dir, 'app.log'), level, text_formatter, 60))
    app.logger.addHandler(_daily_handler(os.path.join(log_dir, 'app.jsonl'), level, json_formatter, 60))
    app.logger.addHandler(_daily_handler(os.path.join(log_dir, 'error.log'), logging.ERROR, text_formatter, 90))

    slow_handler = _daily_handler(os.path.join(log_dir, 'slow_requests.log'), logging.WARNING, text_formatter, 60)
    slow_handler.addFilter(MessageContainsFilter("SLOW REQUEST"))
    app.logger.addHandler(slow_handler)

    if app.debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(text_formatter)
        app.logger.addHandler(console_handler)

    # Module loggers (``app.services.*``, ``app.utils.*``) propagate to ``app.logger``.

    slow_query_handler = SafeTimedRotatingFileHandler(
        os.path.join(log_dir, 'slow_queries.log'),
        when='W0',
        interval=1,
        backupCount=12,
        encoding='utf-8',
        delay=True,
    )
    slow_query_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] SLOW QUERY (%(duration).3fs): %(statement)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    slow_query_logger = _clear_logger_handlers('sqlalchemy.slow_queries')
    slow_query_logger.setLevel(logging.WARNING)
    slow_query_logger.addHandler(slow_query_handler)
    slow_query_logger.propagate = False
    if engine is not None:
        threshold_ms = float(app.config.get("SLOW_QUERY_THRESHOLD_MS", os.getenv("SLOW_QUERY_THRESHOLD_MS", "1000")))
        _register_slow_query_listener(engine, slow_query_logger, threshold_ms)

    user_actions_logger = _clear_logger_handlers('user_actions')
    user_actions_logger.setLevel(logging.INFO)
    user_actions_logger.addHandler(
        _daily_handler(os.path.join(log_dir, 'user_actions.log'), logging.INFO, text_formatter, 180)
    )
    user_actions_logger.addHandler(
        _daily_handler(os.path.join(log_dir, 'user_actions.jsonl'), logging.INFO, json_formatter, 180)
    )
    user_actions_logger.propagate = False

    app.logger.info("Logging configured - logs directory: %s", log_dir, extra={"request_id": "startup"})
    return app.logger


def log_request_info(request, response, duration_ms, request_id=None):
    """Log request information for monitoring.

    Args:
        request: Flask request object
        response: Flask response object
        duration_ms: Request duration in milliseconds
        request_id: Optional correlation identifier
    """
    from flask import current_app

    prefix = f"[req_id={request_id}]" if request_id else "[req_id=na]"

    if duration_ms > 2000:
        current_app.logger.warning(
            "%s SLOW REQUEST (%s ms): %s %s from %s -> %s",
            prefix,
            f"{duration_ms:.0f}",
            request.method,
            request.path,
            request.remote_addr,
            response.status_code,
            extra={"request_id": request_id},
        )
    elif response.status_code >= 500:
        current_app.logger.error(
            "%s ERROR RESPONSE: %s %s from %s -> %s",
            prefix,
            request.method,
            request.path,
            request.remote_addr,
            response.status_code,
            extra={"request_id": request_id},
        )
    elif response.status_code == 429:
        current_app.logger.warning(
            "%s RATE LIMIT HIT: %s %s from %s",
            prefix,
            request.method,
            request.path,
            request.remote_addr,
            extra={"request_id": request_id},
        )
    elif current_app.debug:
        current_app.logger.debug(
            "%s %s %s -> %s (%s ms)",
            prefix,
            request.method,
            request.path,
            response.status_code,
            f"{duration_ms:.0f}",
            extra={"request_id": request_id},
        )


def log_exception(error, request=None):
    """Log exception with request context, masking passwords, tokens and CPFs."""
    from flask import current_app, g

    request_id = getattr(g, "request_id", None) if request else None
    error_msg = f"EXCEPTION: {type(error).__name__}: {error}"

    if request:
        error_msg += f"\nRequest: {request.method} {request.path}"
        error_msg += f"\nIP: {request.remote_addr}"
        if request.form:
            safe_form = {
                k: mask_cpf(v) for k, v in request.form.items()
                if 'password' not in k.lower() and 'token' not in k.lower()
            }
            if safe_form:
                error_msg += f"\nForm data: {safe_form}"

    current_app.logger.error(error_msg, exc_info=error, extra={"request_id": request_id})
