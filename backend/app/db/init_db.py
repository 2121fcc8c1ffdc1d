# backend/app/db/init_db.py
from app.db.base import Base
from app.db.session import engine

# models must be imported so the tables are registered on Base.metadata
from app import models  # noqa: F401


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
