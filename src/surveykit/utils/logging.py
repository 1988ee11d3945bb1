"""Logging configuration using structlog."""

import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger


# =============================================================================
# Job Context Infrastructure
# =============================================================================

_job_id_var: ContextVar[str | None] = ContextVar("job_id", default=None)
_file_context_var: ContextVar[str | None] = ContextVar("file_context", default=None)
_project_context_var: ContextVar[str | None] = ContextVar("project_context", default=None)


def generate_job_id() -> str:
    """Generate a short 8-character identifier for log correlation."""
    return str(uuid.uuid4())[:8]


def get_job_id() -> str | None:
    """Get the current job ID from context."""
    return _job_id_var.get()


@contextmanager
def job_context(
    job_id: str | None = None,
    file_path: str | None = None,
    project: str | None = None,
) -> Generator[str, None, None]:
    """Context manager that tags every log line with job, file and project.

    If no job_id is provided a new short one is generated. The previous
    context is restored on exit, so contexts nest.

    Example:
        >>> with job_context(file_path="/data/scan.las") as job_id:
        ...     log.info("Analyzing")  # Auto-includes file=/data/scan.las
    """
    old_job_id = _job_id_var.get()
    old_file = _file_context_var.get()
    old_project = _project_context_var.get()

    new_job_id = job_id or generate_job_id()
    _job_id_var.set(new_job_id)
    if file_path is not None:
        _file_context_var.set(file_path)
    if project is not None:
        _project_context_var.set(project)

    try:
        yield new_job_id
    finally:
        _job_id_var.set(old_job_id)
        _file_context_var.set(old_file)
        _project_context_var.set(old_project)


def _inject_job_context(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Inject job_id, file and project from context unless already present."""
    job_id = _job_id_var.get()
    if job_id and "job_id" not in event_dict:
        event_dict["job_id"] = job_id

    file_ctx = _file_context_var.get()
    if file_ctx and "file" not in event_dict:
        event_dict["file"] = file_ctx

    project_ctx = _project_context_var.get()
    if project_ctx and "project" not in event_dict:
        event_dict["project"] = project_ctx

    return event_dict


# =============================================================================
# Logging Configuration
# =============================================================================


class SafeStreamHandler(logging.StreamHandler):
    """A StreamHandler that handles encoding errors gracefully.

    Survey files frequently carry non-ASCII names; on consoles with a narrow
    encoding those characters are replaced instead of raising.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record, handling encoding errors gracefully."""
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                safe_msg = msg.encode(stream.encoding or "utf-8", errors="replace").decode(
                    stream.encoding or "utf-8", errors="replace"
                )
                stream.write(safe_msg + self.terminator)
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


# Global console instance for coordinated output
_console: Console | None = None
_log_output: TextIO = sys.stderr

_NOISY_LOGGERS = [
    "asyncio",
    "urllib3",
]


def get_console() -> Console:
    """Get the global Rich console for coordinated output."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def _filter_event_dict(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Filter out excessively long values from event dict.

    Converter stdout chunks can be large; they are cut to keep lines readable.
    """
    max_value_length = 500
    for key, value in list(event_dict.items()):
        if isinstance(value, str) and len(value) > max_value_length:
            event_dict[key] = value[:max_value_length] + f"... [{len(value)} chars total]"
        elif isinstance(value, (bytes, bytearray)) and len(value) > max_value_length:
            event_dict[key] = f"[BINARY DATA: {len(value)} bytes]"
    return event_dict


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = False,
    console: Console | None = None,
    console_level: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structlog for the application.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging output. Rotated daily,
                  seven days are kept.
        json_format: If True, output JSON format
        console: Optional Rich Console for coordinated output with Progress
        console_level: Optional override for console handler level
        file_level: Optional override for file handler level
    """
    global _console

    log_level = getattr(logging, level.upper(), logging.INFO)

    if console is not None:
        _console = console

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _inject_job_context,
        _filter_event_dict,
    ]

    if json_format:
        final_processor: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
            pad_event_to=0,
            pad_level=False,
            sort_keys=False,
        )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_processor,
        ],
    )

    console_handler = SafeStreamHandler(_log_output)
    c_level = getattr(logging, console_level.upper(), log_level) if console_level else log_level
    console_handler.setLevel(c_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_renderer: structlog.types.Processor
        if json_format:
            file_renderer = structlog.processors.JSONRenderer()
        else:
            file_renderer = structlog.dev.ConsoleRenderer(
                colors=False,
                exception_formatter=structlog.dev.plain_traceback,
                pad_event_to=0,
                pad_level=False,
                sort_keys=False,
            )
        file_formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                file_renderer,
            ],
        )

        file_handler = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"

        f_level = getattr(logging, file_level.upper(), log_level) if file_level else log_level
        file_handler.setLevel(f_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,  # Allow reconfiguration
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name

    Returns:
        A structlog bound logger
    """
    return structlog.get_logger(name)


def create_task_log_path(log_dir: str | Path, prefix: str = "task") -> tuple[str, Path]:
    """Create a unique task log file path with timestamp and short ID.

    Example:
        >>> task_id, log_path = create_task_log_path(".logs", "import")
        >>> print(log_path)  # .logs/import_20261019_143052_a1b2c3d4.log
    """
    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)

    task_id = generate_job_id()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir_path / f"{prefix}_{timestamp}_{task_id}.log"

    return task_id, log_file


def setup_task_logging(
    log_dir: str | Path,
    prefix: str = "task",
    verbose: bool = False,
) -> tuple[str, Path]:
    """Set up logging for one CLI task.

    The console shows WARNING and above unless verbose, the task log file
    always captures DEBUG.

    Returns:
        Tuple of (task_id, log_file_path)
    """
    task_id, log_path = create_task_log_path(log_dir, prefix)

    setup_logging(
        level="DEBUG",
        log_file=str(log_path),
        console_level="DEBUG" if verbose else "WARNING",
        file_level="DEBUG",
    )

    return task_id, log_path
