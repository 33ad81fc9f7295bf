"""Root conftest: test environment and structlog routing shared by every package."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

ENV_FILE = Path(__file__).resolve().parent.parent / ".env.tests"

load_dotenv(ENV_FILE)


def _configure_structlog_for_caplog() -> None:
    """Send structlog events through stdlib logging so ``caplog`` sees lobby logs."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


_configure_structlog_for_caplog()


@pytest.fixture(autouse=True)
def _isolated_log_context():
    # room_class / client_id bindings must not leak into the next test
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
