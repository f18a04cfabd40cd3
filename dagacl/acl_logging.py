import contextvars
import logging
import sys
from configparser import RawConfigParser
from contextlib import contextmanager
from logging import Logger
from logging import config as logging_config
from typing import TYPE_CHECKING, Dict, Generator, List, Optional, TextIO

from dagacl import config

if TYPE_CHECKING:
    from logging import LogRecord

# Default logging configuration
DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "root": {"level": "INFO", "handlers": ["consoleHandler"]},
    "loggers": {
        "dagacl": {
            "level": "INFO",
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "formatter_formatter",
            "stream": "ext://sys.stdout",
        }
    },
    "formatters": {
        "formatter_formatter": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}

try:
    logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)
except KeyError:
    logging.basicConfig(format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s", level=logging.DEBUG)


dag_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("dag_id")


@contextmanager
def dag_log_context(dag_id: str) -> Generator[None, None, None]:
    """Tag every record logged inside the block with ``dag_id``."""
    token = dag_id_var.set(dag_id)
    try:
        yield
    finally:
        dag_id_var.reset(token)


def annotate_logger(logger: Logger) -> None:
    """
    Adds a DAG ID filter to all handlers of the specified logger.

    Args:
        logger (Logger): The logger instance to annotate.
    """
    dag_id_filter = DAGIDFilter()

    for handler in logger.handlers:
        if not any(isinstance(f, DAGIDFilter) for f in handler.filters):
            handler.addFilter(dag_id_filter)


def _handler_names(options: Dict[str, str]) -> List[str]:
    return [name.strip() for name in options.get("handlers", "").split(",") if name.strip()]


def _handler_stream(args: str) -> TextIO:
    """Map the ``args`` option of a handler section to the stream to log to.

    Only ``()``, ``(sys.stdout,)`` and ``(sys.stderr,)`` are accepted.
    """
    stream = args.strip().strip("()").strip().rstrip(",").strip()
    if stream in ("", "sys.stdout"):
        return sys.stdout
    if stream == "sys.stderr":
        return sys.stderr
    raise ValueError(f"Unsupported handler args: {args}")


def _configure_logging_from_raw(raw_config: RawConfigParser) -> None:
    """Apply the formatter_*, handler_* and logger_* sections of ``raw_config``.

    Handlers are console handlers, every one of them tagging its records with
    the DAG ID.
    """
    formatters: Dict[str, logging.Formatter] = {}
    handlers: Dict[str, logging.Handler] = {}
    loggers: Dict[str, Dict[str, str]] = {}

    for section in raw_config.sections():
        kind, _, name = section.partition("_")
        options = dict(raw_config.items(section))
        if kind == "formatter":
            formatters[name] = logging.Formatter(options.get("format", "%(message)s"), options.get("datefmt"))
        elif kind == "logger":
            loggers[name] = options

    for section in raw_config.sections():
        kind, _, name = section.partition("_")
        if kind != "handler":
            continue
        options = dict(raw_config.items(section))
        handler_class = options.get("class", "logging.StreamHandler")
        if handler_class not in ("StreamHandler", "logging.StreamHandler"):
            raise ValueError(f"Unsupported handler class: {handler_class}")

        handler = logging.StreamHandler(_handler_stream(options.get("args", "()")))
        handler.setLevel(options.get("level", "NOTSET").upper())
        if options.get("formatter") in formatters:
            handler.setFormatter(formatters[options["formatter"]])
        handler.addFilter(DAGIDFilter())
        handlers[name] = handler

    for name, options in loggers.items():
        logger = logging.getLogger() if name == "root" else logging.getLogger(name)
        logger.setLevel(options.get("level", "NOTSET").upper())
        if name != "root":
            logger.propagate = options.get("propagate", "1") == "1"
        logger.handlers = [handlers[h] for h in _handler_names(options) if h in handlers]


@contextmanager
def _safe_logging_configuration() -> Generator[None, None, None]:
    """Restore the level, handlers and propagation of every logger, the root
    logger included, if the block raises."""
    saved = {
        logger: (list(logger.handlers), logger.level, logger.propagate)
        for logger in [logging.getLogger()]
        + [lg for lg in logging.Logger.manager.loggerDict.values() if isinstance(lg, logging.Logger)]
    }

    try:
        yield
    except Exception:
        for logger, (handlers, level, propagate) in saved.items():
            logger.handlers = handlers
            logger.setLevel(level)
            logger.propagate = propagate
        raise


def _safe_get_config(component: str) -> Optional[RawConfigParser]:
    try:
        return config.get_config(component)
    except Exception:
        return None


def init_logging(loggername: str) -> Logger:
    """
    Initializes the logging system for a specific logger.

    The handlers, formatters and loggers defined in the "logging" component
    configuration are applied, and the root handlers are annotated with the
    DAG ID filter.

    Args:
        loggername (str): The name of the logger to initialize.

    Returns:
        Logger: The "dagacl.<loggername>" logger instance.
    """
    logger = logging.getLogger(f"dagacl.{loggername}")

    logging_conf = _safe_get_config("logging")

    if logging_conf is not None and logging_conf.sections():
        try:
            with _safe_logging_configuration():
                _configure_logging_from_raw(logging_conf)
        except Exception as e:
            logger.error("Logging configuration error: %s", e)

    annotate_logger(logging.getLogger())

    return logger


class DAGIDFilter(logging.Filter):
    """
    A logging filter that adds the current DAG ID to log records.

    The DAG ID is read from the `dag_id_var` context variable and attached to
    each record as `dagid` and `dagidf`.
    """

    def filter(self, record: "LogRecord") -> bool:
        dag_id = dag_id_var.get("")

        record.dagid = dag_id
        record.dagidf = f"(dag={dag_id})" if dag_id else ""

        return True
