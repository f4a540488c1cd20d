import logging
import sys

# ------------------------------------------------------------
# Defaults
# ------------------------------------------------------------
LOG_FILE = "notification_migration.log"
LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(module)s:%(lineno)d] - %(message)s'
LOG_LEVEL = "INFO"

# Seconds to keep retrying a connection while the database comes up.
CONNECT_TIMEOUT = 60
CONNECT_RETRY_DELAY = 2


# ------------------------------------------------------------
# Logging setup
# ------------------------------------------------------------
def configure_logging(level=LOG_LEVEL, log_file=LOG_FILE):
    """
    Configure the root logger for a migration run.

    :param level: Level name or number for the root logger.
    :param log_file: Path of the log file; an empty value disables the file handler.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))

    if isinstance(level, str):
        level = level.upper()

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
