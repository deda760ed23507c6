"""
Logging setup for the referral engine service.

Call setup_logging() once at startup (the app factory does this).
Modules then use logging.getLogger(__name__) or get_logger().
"""
import os
import sys
import logging

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

_configured = False


def setup_logging(level: str = None) -> None:
    """
    Configure the root logger with a single stdout handler.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL env var, then INFO.
    """
    global _configured

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # SQLAlchemy engine logs are noisy at INFO
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
