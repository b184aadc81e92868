from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base

from config import Config
from errors import StoreError
from logger import Log

SQLALCHEMY_DATABASE_URL = Config.DATABASE_URL

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False, "timeout": 10}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args=connect_args,
    echo=False,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def init_db(bind=None):
    # models must be imported so their tables are registered on Base
    import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)

def commit(db, log_tag: str, message: str = "Could not save changes"):
    """Commit one store write; failures are logged, rolled back and re-raised as StoreError."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        Log.error(f"{log_tag} {e}")
        raise StoreError(message) from e

def execute(db, statement, log_tag: str, message: str = "Could not save changes"):
    """Run one bulk statement with the same failure handling as commit()."""
    try:
        return db.execute(statement)
    except SQLAlchemyError as e:
        db.rollback()
        Log.error(f"{log_tag} {e}")
        raise StoreError(message) from e

def get_row(db, model, row_id, log_tag: str, message: str = "Could not read from the store"):
    """Primary key lookup; store failures surface as StoreError, a missing row as None."""
    try:
        return db.get(model, row_id)
    except SQLAlchemyError as e:
        db.rollback()
        Log.error(f"{log_tag} {e}")
        raise StoreError(message) from e
