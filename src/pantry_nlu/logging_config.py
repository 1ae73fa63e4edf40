"""
Structured JSON Logging Configuration

Provides consistent, parseable logging for the NLU tables and the
orchestration core. Logs can be viewed with jq for easy filtering.
"""
import functools
import inspect
import json
import logging
import os
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional


# Attributes every LogRecord carries; anything else came in through extra={}
_STANDARD_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'extra_data', 'getMessage', 'taskName'
}


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Outputs logs as single-line JSON objects that are:
    - Machine-parseable
    - Human-readable with jq
    - Consistent across environments
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_data.update(record.extra_data)

        # Fields passed via extra={} (conversation_id, target_agent, ...)
        for attr_name, attr_value in record.__dict__.items():
            if attr_name in _STANDARD_ATTRS or attr_name in log_data:
                continue
            if isinstance(attr_value, (str, int, float, bool, type(None), dict, list)):
                log_data[attr_name] = attr_value

        return json.dumps(log_data, ensure_ascii=False, default=str)


class PrettyJSONFormatter(logging.Formatter):
    """
    Readable single-line formatter for development.

    Keeps the same field names as the JSON output so switching formats
    does not change what is logged.
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m',
    }

    CONTEXT_FIELDS = (
        'request_id', 'conversation_id', 'user_id', 'intent',
        'target_agent', 'workflow_id', 'execution_id', 'step_id',
        'attempts', 'duration_ms', 'processing_time_ms',
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a colored line with key=value context."""
        timestamp = datetime.now(timezone.utc).strftime('%H:%M:%S.%f')[:-3]
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        parts = [
            f"{color}[{record.levelname}]{reset}",
            timestamp,
            f"{record.name}:",
            record.getMessage(),
        ]

        extra_parts = []
        for field_name in self.CONTEXT_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                extra_parts.append(f"{field_name}={value}")
        if extra_parts:
            parts.append(f"({', '.join(extra_parts)})")

        result = ' '.join(parts)
        if record.exc_info:
            result += '\n' + self.formatException(record.exc_info)
        return result


def setup_logging(
    app_name: str = 'pantry',
    log_level: str = 'INFO',
    log_format: str = 'json',
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure structured logging for the application.

    Both packages log under their module names (``pantry_core.*`` and
    ``pantry_nlu.*``), so configuring the ``pantry_core`` and ``pantry_nlu``
    parents through ``app_name`` covers every module.

    Args:
        app_name: Name of the application logger
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format type ('json' or 'pretty')
        log_file: Optional file path for file-based logging

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logging('pantry_core', 'INFO', 'json')
        >>> logger.info('Manager started', extra={'max_context_history': 20})
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(app_name)
    logger.setLevel(numeric_level)
    logger.handlers = []

    if log_format == 'pretty':
        formatter: logging.Formatter = PrettyJSONFormatter()
    else:
        formatter = JSONFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(numeric_level)
            # Always use JSON for file logs
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Failed to setup file logging: {e}")

    logger.propagate = False

    return logger


def generate_request_id() -> str:
    """
    Generate a short request ID for tracing.

    Returns:
        8-character unique identifier
    """
    return str(uuid.uuid4())[:8]


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    request_id: Optional[str] = None,
    **kwargs
):
    """
    Log with additional context fields.

    Args:
        logger: Logger instance
        level: Logging level (logging.INFO, etc.)
        message: Log message
        request_id: Optional request ID for tracing
        **kwargs: Additional context fields

    Example:
        >>> log_with_context(
        ...     logger, logging.INFO, "Routing completed",
        ...     request_id="abc123", target_agent="inventory"
        ... )
    """
    if not logger.isEnabledFor(level):
        return

    record = logger.makeRecord(logger.name, level, '', 0, message, (), None)
    if request_id:
        record.request_id = request_id
    for key, value in kwargs.items():
        setattr(record, key, value)

    logger.handle(record)


# ============================================================================
# Function Call Logging Decorator
# ============================================================================

def log_function_call(
    level: str = 'DEBUG',
    log_args: bool = True,
    log_result: bool = True,
    log_time: bool = True,
    truncate_at: int = 500
):
    """
    Decorator to automatically log function input, output, and timing.

    Works on plain functions and on coroutine functions. Summaries are logged
    at ``level``; full arguments and results only when DEBUG is enabled.

    Args:
        level: Log level for summaries ('INFO' or 'DEBUG')
        log_args: Whether to log function arguments
        log_result: Whether to log function result
        log_time: Whether to log execution time
        truncate_at: Truncate long strings at this length

    Example:
        >>> @log_function_call()
        ... def classify(self, utterance: str):
        ...     return result

        Produces logs:
        DEBUG: IntentClassifier.classify() called (utterance_length=6)
        DEBUG: IntentClassifier.classify() completed (duration_ms=0.2)
    """

    def decorator(func: Callable) -> Callable:
        logger = logging.getLogger(func.__module__)
        log_level = getattr(logging, level.upper(), logging.DEBUG)
        func_name = func.__qualname__

        def _before(args, kwargs):
            if logger.isEnabledFor(log_level):
                logger.log(log_level, f"{func_name}() called",
                           extra=_prepare_args_summary(func, args, kwargs))
            if log_args and logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"{func_name}() input",
                             extra={'arguments': _prepare_args_debug(func, args, kwargs, truncate_at)})
            return time.perf_counter()

        def _after(result, start_time):
            duration = (time.perf_counter() - start_time) * 1000
            if logger.isEnabledFor(log_level):
                result_info = _prepare_result_summary(result)
                if log_time:
                    result_info['duration_ms'] = round(duration, 2)
                logger.log(log_level, f"{func_name}() completed", extra=result_info)
            if log_result and logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"{func_name}() output",
                             extra=_prepare_result_debug(result, truncate_at))

        def _failed(error, start_time):
            duration = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{func_name}() failed after {round(duration, 2)}ms",
                extra={
                    'error_type': type(error).__name__,
                    'error_message': str(error),
                    'duration_ms': round(duration, 2)
                },
                exc_info=True
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                start_time = _before(args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _failed(e, start_time)
                    raise
                _after(result, start_time)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start_time = _before(args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _failed(e, start_time)
                raise
            _after(result, start_time)
            return result

        return wrapper
    return decorator


def _bound_arguments(func, args, kwargs) -> Dict[str, Any]:
    try:
        bound = inspect.signature(func).bind_partial(*args, **kwargs)
    except (TypeError, ValueError):
        return {}
    return {k: v for k, v in bound.arguments.items() if k != 'self'}


def _prepare_args_summary(func, args, kwargs) -> Dict[str, Any]:
    """Prepare argument summary for summary-level logging."""
    info: Dict[str, Any] = {}
    for param_name, param_value in _bound_arguments(func, args, kwargs).items():
        if isinstance(param_value, str):
            info[f'{param_name}_length'] = len(param_value)
        elif isinstance(param_value, (list, tuple, dict)):
            info[f'{param_name}_count'] = len(param_value)
        elif isinstance(param_value, (int, float, bool)) or param_value is None:
            info[param_name] = param_value
    return info


def _prepare_args_debug(func, args, kwargs, truncate_at) -> Dict[str, Any]:
    """Prepare full arguments for DEBUG logging."""
    debug_info: Dict[str, Any] = {}
    for param_name, param_value in _bound_arguments(func, args, kwargs).items():
        if isinstance(param_value, str) and len(param_value) > truncate_at:
            debug_info[param_name] = param_value[:truncate_at] + '...'
        elif isinstance(param_value, (list, tuple)) and len(param_value) > 10:
            debug_info[param_name] = list(param_value[:10]) + ['...']
        elif isinstance(param_value, (str, int, float, bool, type(None), dict, list)):
            debug_info[param_name] = param_value
        else:
            debug_info[param_name] = repr(param_value)[:truncate_at]
    return debug_info


def _prepare_result_summary(result) -> Dict[str, Any]:
    """Prepare result summary for summary-level logging."""
    info: Dict[str, Any] = {}

    if result is None:
        info['result'] = 'None'
        return info

    for attr in ('intent', 'confidence', 'target_agent', 'needs_clarification', 'status'):
        if hasattr(result, attr):
            value = getattr(result, attr)
            info[attr] = getattr(value, 'value', value)

    if isinstance(result, (list, tuple)):
        info['result_count'] = len(result)

    return info


def _prepare_result_debug(result, truncate_at) -> Dict[str, Any]:
    """Prepare full result for DEBUG logging."""
    if result is None:
        return {'result': None}
    if hasattr(result, 'to_dict'):
        return {'result': result.to_dict()}
    if isinstance(result, (dict, list, tuple, str, int, float, bool)):
        return {'result': result}
    return {'result': str(result)[:truncate_at]}
