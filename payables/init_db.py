import logging

from payables.db import engine
from payables.models import Base

logger = logging.getLogger(__name__)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info('Created ledger tables on %s', engine.url.render_as_string(hide_password=True))


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    init_db()
