"""Process entry point: runs the sync scheduler"""

import logging
import signal
import threading

from tracksync.config import settings
from tracksync.models.base import init_db
from tracksync.scheduler import scheduler

logger = logging.getLogger(__name__)


def configure_logging(level: str = None):
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def run():
    """Initialize the database and sync until SIGINT/SIGTERM"""
    configure_logging()
    logger.info("Starting tracksync")
    init_db()
    scheduler.start()

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    stop.wait()

    logger.info("Stopping tracksync")
    scheduler.stop()


if __name__ == "__main__":
    run()
