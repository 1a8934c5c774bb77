"""Initialize database tables."""
import logging

from sqlmodel import SQLModel

# Import models so their tables are registered on the metadata
from cadence.models.task import Task  # noqa: F401
from cadence.models.task_instance import TaskInstance  # noqa: F401
from cadence.db.config import engine

logger = logging.getLogger(__name__)


def init_db(bind=None):
    """Create all tables in the database."""
    logger.info("Creating all tables...")
    SQLModel.metadata.create_all(bind or engine)
    logger.info("Tables created successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
