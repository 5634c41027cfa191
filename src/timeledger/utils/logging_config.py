"""
Centralized logging configuration for timeledger.
Provides component-specific loggers with separate log files.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime

from ..config import get_config

DETAILED_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - "
    "%(funcName)s() - %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class ComponentLogger:
    """Manages component-specific logging with separate files."""

    _loggers: Dict[str, logging.Logger] = {}
    _initialized = False
    _log_dir: Optional[Path] = None
    _to_file = False
    _debug = False
    _unified_handler: Optional[logging.Handler] = None

    # Component definitions with their log levels
    COMPONENTS = {
        "cache": {"level": logging.INFO, "file": "cache.log"},
        "store": {"level": logging.INFO, "file": "store.log"},
        "sync": {"level": logging.INFO, "file": "sync.log"},
        "gc": {"level": logging.INFO, "file": "gc.log"},
        "stats": {"level": logging.INFO, "file": "stats.log"},
        "api": {"level": logging.INFO, "file": "api.log"},
        "main": {"level": logging.INFO, "file": "main.log"},
        "error": {"level": logging.ERROR, "file": "errors.log"},
    }

    @classmethod
    def initialize(
        cls,
        log_dir: Optional[str] = None,
        debug: Optional[bool] = None,
        to_file: Optional[bool] = None,
    ) -> None:
        """
        Initialize the logging system with component-specific loggers.

        Args:
            log_dir: Directory for log files. Defaults to config.app.log_dir
            debug: Enable debug logging for all components
            to_file: Write rotating log files instead of logging to stderr
        """
        if cls._initialized:
            return

        config = get_config()
        cls._debug = config.app.debug if debug is None else debug
        cls._to_file = config.app.log_to_file if to_file is None else to_file

        session_dir = datetime.now().strftime("%Y%m%d_%H%M%S")
        if cls._to_file:
            base_dir = Path(log_dir or config.app.log_dir)
            cls._log_dir = base_dir / session_dir
            cls._log_dir.mkdir(parents=True, exist_ok=True)

            unified_handler = logging.handlers.RotatingFileHandler(
                cls._log_dir / "unified.log",
                maxBytes=20 * 1024 * 1024,  # 20MB
                backupCount=3,
                encoding="utf-8",
            )
            unified_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            cls._unified_handler = unified_handler

        # Mark as initialized before creating loggers to avoid recursion
        cls._initialized = True

        for component_name in cls.COMPONENTS:
            cls._create_component_logger(component_name)

        main_logger = cls._loggers["main"]
        main_logger.info("timeledger logging initialized")
        main_logger.info(f"Session: {session_dir}")
        if cls._log_dir:
            main_logger.info(f"Log directory: {cls._log_dir}")
        main_logger.info(f"Debug mode: {cls._debug}")

    @classmethod
    def _create_component_logger(cls, component: str) -> logging.Logger:
        """Create a component logger on-demand."""
        if component in cls._loggers:
            return cls._loggers[component]

        component_config = cls.COMPONENTS.get(
            component, {"level": logging.INFO, "file": f"{component}.log"}
        )
        level = logging.DEBUG if cls._debug else component_config["level"]

        logger = logging.getLogger(f"timeledger.{component}")
        logger.handlers.clear()
        logger.propagate = False
        logger.setLevel(level)

        if cls._to_file and cls._log_dir is not None:
            file_handler = logging.handlers.RotatingFileHandler(
                cls._log_dir / component_config["file"],
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            logger.addHandler(file_handler)

            if cls._unified_handler is not None:
                logger.addHandler(cls._unified_handler)

        # Console handler for errors, or everything when not writing files
        if not cls._to_file or component in ("error", "main"):
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level if not cls._to_file else logging.ERROR)
            console_handler.setFormatter(logging.Formatter(SIMPLE_FORMAT, datefmt="%H:%M:%S"))
            logger.addHandler(console_handler)

        cls._loggers[component] = logger
        return logger

    @classmethod
    def get_logger(cls, component: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            component: Component name (cache, store, sync, gc, ...) or a
                       module path like 'timeledger.sync.engine'

        Returns:
            Logger instance for the component
        """
        if not cls._initialized:
            cls.initialize()

        if component.startswith("timeledger."):
            parts = component.split(".")
            component = parts[1] if len(parts) > 1 else "main"

        return cls._create_component_logger(component)

    @classmethod
    def log_exception(
        cls, component: str, exc: Exception, context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an exception with context to both component and error logs.

        Args:
            component: Component where the exception occurred
            exc: The exception to log
            context: Additional context information
        """
        component_logger = cls.get_logger(component)
        error_logger = cls.get_logger("error")

        context_str = ""
        if context:
            context_str = " | Context: " + ", ".join(f"{k}={v}" for k, v in context.items())

        component_logger.error(
            f"Exception in {component}: {type(exc).__name__}: {exc}{context_str}",
            exc_info=exc,
        )
        error_logger.error(
            f"[{component}] {type(exc).__name__}: {exc}{context_str}", exc_info=exc
        )

    @classmethod
    def get_log_directory(cls) -> Optional[Path]:
        """Get the current log directory path."""
        return cls._log_dir

    @classmethod
    def reset(cls) -> None:
        """Close handlers and forget all loggers."""
        for logger in cls._loggers.values():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                if handler is not cls._unified_handler:
                    handler.close()
        if cls._unified_handler is not None:
            cls._unified_handler.close()
        cls._loggers = {}
        cls._unified_handler = None
        cls._log_dir = None
        cls._initialized = False


# Convenience functions
def get_logger(component: str) -> logging.Logger:
    """Get a logger for a specific component."""
    return ComponentLogger.get_logger(component)


def initialize_logging(
    log_dir: Optional[str] = None,
    debug: Optional[bool] = None,
    to_file: Optional[bool] = None,
) -> None:
    """Initialize the logging system."""
    ComponentLogger.initialize(log_dir=log_dir, debug=debug, to_file=to_file)


def log_exception(component: str, exc: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an exception with context."""
    ComponentLogger.log_exception(component, exc, context)


def get_log_directory() -> Optional[Path]:
    """Get the current log directory path."""
    return ComponentLogger.get_log_directory()
