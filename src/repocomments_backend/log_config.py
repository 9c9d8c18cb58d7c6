import logging
import os
import sys


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log output."""

    # ANSI color codes
    grey = "\x1b[38;21m"
    green = "\x1b[32m"
    yellow = "\x1b[33m"
    red = "\x1b[31m"
    bold_red = "\x1b[31;1m"
    orange = "\x1b[38;5;208m"  # Orange color for timestamp
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: green,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red
    }

    def format(self, record):
        formatted = super().format(record)

        # Only colorize if outputting to terminal
        if sys.stdout.isatty():
            log_color = self.COLORS.get(record.levelno, self.grey)

            # Format is: "timestamp - LEVEL - name - message"
            parts = formatted.split(' - ', 3)
            if len(parts) >= 3:
                timestamp = parts[0]
                level = parts[1]
                rest = ' - '.join(parts[2:])

                colored_timestamp = f"{self.orange}{timestamp}{self.reset}"
                colored_level = f"{log_color}{level}{self.reset}"
                formatted = f"{colored_timestamp} - {colored_level} - {rest}"

        return formatted


def setup_logging():
    """Configure logging with colors and datetime."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(levelname)-8s - %(name)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root.addHandler(handler)
    root.setLevel(logging.WARNING)  # Default to WARNING to avoid verbose logs

    for name in ("uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.setLevel(logging.INFO)


def configure_module_logging() -> str:
    """
    Configure module log levels from the environment.

    WEBSOCKET_LOG_LEVEL controls the realtime modules (default WARNING);
    everything else in the backend stays at WARNING.
    """
    ws_log_level = os.environ.get("WEBSOCKET_LOG_LEVEL", "WARNING").upper()

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if ws_log_level not in valid_levels:
        ws_log_level = "WARNING"

    backend_modules = [
        "repocomments_backend",  # Root module - this catches all sub-modules
        "repocomments_backend.permissions",
        "repocomments_backend.exceptions",
        "repocomments_backend.database",
    ]

    for module in backend_modules:
        logging.getLogger(module).setLevel(logging.WARNING)

    websocket_modules = [
        "repocomments_backend.websocket",
        "repocomments_backend.websocket.router",
        "repocomments_backend.websocket.connection_manager",
        "repocomments_backend.websocket.registry",
        "repocomments_backend.websocket.rooms",
        "repocomments_backend.websocket.pubsub",
        "repocomments_backend.websocket.handlers",
        "repocomments_backend.websocket.auth",
        "repocomments_backend.websocket.broadcast",
    ]

    for module in websocket_modules:
        logging.getLogger(module).setLevel(getattr(logging, ws_log_level))

    # Suppress access logs in quiet mode
    if ws_log_level in ["ERROR", "CRITICAL"]:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return ws_log_level


def uvicorn_log_config(uvicorn_log_level: str = "info") -> dict:
    """Uvicorn log config using ColoredFormatter."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "colored": {
                "()": ColoredFormatter,
                "fmt": "%(asctime)s - %(levelname)-8s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "stream": "ext://sys.stdout"
            },
        },
        "loggers": {
            "uvicorn": {
                "handlers": ["default"],
                "level": uvicorn_log_level.upper(),
                "propagate": False
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": uvicorn_log_level.upper(),
                "propagate": False
            },
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "INFO" if uvicorn_log_level != "error" else "WARNING",
                "propagate": False
            }
        }
    }
