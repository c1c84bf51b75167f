# app/database.py
from functools import lru_cache
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from supabase import create_client, Client

from app.config import get_settings

settings = get_settings()

# SQLite needs cross-thread access because FastAPI runs sync dependencies in a threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

# Create SQLAlchemy engine and session factory
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# SQLAlchemy Base
Base = declarative_base()


# Dependency to get DB session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache()
def get_supabase() -> Client:
    """Identity provider client, created on first use"""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
