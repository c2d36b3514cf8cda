from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker


@contextmanager
def script_session(db_url: str, *, create_tables: bool = False):
    """
    Session for one-off scripts; commits on success, rolls back on error.
    `create_tables` builds the schema from the models (local SQLite setups
    that skip Alembic).
    """
    engine = create_engine(db_url, future=True, pool_pre_ping=True)
    if create_tables:
        from app.musaib.models import Base

        Base.metadata.create_all(bind=engine)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
