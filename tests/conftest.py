import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campus.core.config import Settings
from campus.core.database import get_db
from campus.main import app
from campus.models import Base
from campus.modules.attendance.cooldown import CooldownTracker
from campus.modules.attendance.routes import get_cooldown


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def config():
    return Settings()


@pytest.fixture
def cooldown():
    return CooldownTracker(window_seconds=30)


@pytest.fixture
def client(db, cooldown):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cooldown] = lambda: cooldown
    yield TestClient(app)
    app.dependency_overrides.clear()
