from sqlalchemy import Engine
from sqlmodel import SQLModel, create_engine

from orderdesk.models.schema import *  # noqa: F403 # SQLModel subclasses need to be in memory
from orderdesk.shared import Logger, load_config

logger = Logger(__name__).get_logger()

config = load_config()

# SQLite connections are handed between the event loop and worker threads
connect_args = (
    {"check_same_thread": False} if config.database.path.startswith("sqlite") else {}
)

engine: Engine = create_engine(config.database.path, connect_args=connect_args)
SQLModel.metadata.create_all(engine)
logger.debug("Database ready at %s", engine.url.render_as_string(hide_password=True))

