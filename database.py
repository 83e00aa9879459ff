import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config import get_settings

logger = logging.getLogger(__name__)

DB_URL = get_settings().database_url
connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

engine = create_engine(DB_URL, connect_args=connect_args, pool_pre_ping=True)
# deleted rows are handed back to the caller after commit
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

class Base(DeclarativeBase):
    pass

def init_db():
    logger.info("[DB] create tables url=%s", engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=engine)
