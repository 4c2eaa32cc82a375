import logging
import sys

# Third-party loggers that are noisy at INFO
_QUIET = ("sqlalchemy.engine", "httpx", "httpcore")


def setup_logging(level: str = "INFO", sql_echo: bool = False):
    """
    Configure the root logger once per process.

    A handler is only added when none exists, so test runners and hosting
    servers keep their own. SQL statements are logged at INFO when sql_echo
    is set.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if not root_logger.hasHandlers():
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(console_handler)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)
    if sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
    logging.getLogger("alembic").setLevel(logging.INFO)
