"""
Database connection and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from campus.core.config import settings

DATABASE_URL = settings.database_url

# SQLite connections are shared across FastAPI's worker threads
connect_args = {'check_same_thread': False} if DATABASE_URL.startswith('sqlite') else {}

# Create engine
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Initialize database - create tables"""
    from campus.models import Base
    Base.metadata.create_all(bind=bind or engine)
