"""
Pytest Configuration for Proctorly Tests
"""
import os
import sys
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from proctorly.core.database import build_engine, get_db, init_db
from proctorly.services.media_store import MediaStore, get_media_store
from proctorly.services.monitoring_service import MonitoringService


@pytest.fixture(scope='function')
def engine(tmp_path):
    """File-backed SQLite so that several connections can share it"""
    eng = build_engine(f"sqlite:///{tmp_path / 'proctorly-test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope='function')
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture(scope='function')
def media_dir(tmp_path):
    path = tmp_path / "videos"
    path.mkdir()
    return path


@pytest.fixture(scope='function')
def media_store(media_dir):
    return MediaStore(root=media_dir, max_bytes=1024 * 1024, media_type="video/webm")


@pytest.fixture(scope='function')
def service(db_session, media_store):
    return MonitoringService(db_session, media_store)


@pytest.fixture(scope='function')
def make_service(session_factory, media_store):
    """Factory for services with their own session (one per thread)"""
    sessions = []

    def _make():
        db = session_factory()
        sessions.append(db)
        return MonitoringService(db, media_store)

    yield _make
    for db in sessions:
        db.close()


@pytest.fixture(scope='function')
def app(session_factory, media_store):
    """FastAPI app wired to the per-test database and media directory"""
    from main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_store] = lambda: media_store
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope='function')
def client(app):
    """FastAPI test client"""
    return TestClient(app)


@pytest.fixture(scope='function')
def candidate(client):
    """A freshly started candidate session"""
    response = client.post('/api/candidates', json={
        'candidate_id': 'cand-001',
        'name': 'Test Candidate',
        'email': 'candidate@example.com',
    })
    assert response.status_code == 201
    return response.json()
