import asyncio
import io
import logging
import sys
import time
from typing import Any, Optional

from fastapi import FastAPI
from uvicorn import Config, Server

from antiforgery import cfg
from antiforgery.frontend.web_app.app import app as frontend_app
from antiforgery.frontend.web_app.deps import redis_store

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d in %(funcName)s()] - %(message)s"

# third-party loggers kept at WARNING and above
NOISY_LOGGERS = (
    "python_multipart.multipart",
    "redis",
    "asyncio",
    "uvicorn.access",
)


# --- Logging Configuration ---
class ExtraFormatter(logging.Formatter):
    """Appends whatever was passed through `extra={...}` to the line."""

    converter = time.gmtime
    _standard_attrs = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record).encode("utf-8", errors="replace").decode("utf-8")
        extras = {k: v for k, v in record.__dict__.items() if k not in self._standard_attrs}
        if extras:
            line += " | extra: (" + ", ".join(f"{k}={v}" for k, v in extras.items()) + ")"
        return line


class MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


def _utf8_handler(stream, level: int, max_level: Optional[int] = None) -> logging.Handler:
    handler = logging.StreamHandler(io.TextIOWrapper(stream.buffer, encoding="utf-8", errors="replace"))
    handler.setLevel(level)
    handler.setFormatter(ExtraFormatter(LOG_FORMAT))
    if max_level is not None:
        handler.addFilter(MaxLevelFilter(max_level))
    return handler


def setup_logging(level: str = cfg.LOG_LEVEL) -> None:
    """DEBUG/INFO go to stdout, WARNING and above to stderr."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(_utf8_handler(sys.stdout, logging.DEBUG, max_level=logging.INFO))
    root_logger.addHandler(_utf8_handler(sys.stderr, logging.WARNING))

    for name in NOISY_LOGGERS:
        noisy = logging.getLogger(name)
        noisy.handlers.clear()
        noisy.setLevel(logging.WARNING)
        noisy.propagate = True


logger = logging.getLogger(__name__)

# --- FastAPI setup ---
app = FastAPI()
app.mount("/", frontend_app)


async def run_app(app: FastAPI, host: str = cfg.HOST, port: int = cfg.PORT,
                  log_config: Any = None, log_level: int = logging.INFO, **kwargs):
    config = Config(app, host, port, log_config=log_config, log_level=log_level, **kwargs)
    server = Server(config)
    return await server.serve()


async def main():
    setup_logging()
    try:
        if redis_store is not None:
            await redis_store.connect()
        logger.info("Application startup.", extra={"component": "web", "csrf_storage": cfg.CSRF_STORAGE})
        await run_app(app)
    except Exception as e:
        logger.exception("Application failure.", extra={"error_type": type(e).__name__})
        raise
    finally:
        if redis_store is not None:
            await redis_store.close()
        logger.info("Application shutdown completed.")


if __name__ == "__main__":
    asyncio.run(main())
