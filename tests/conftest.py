import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("SHOPIFY_APP_API_KEY", "test_key")
os.environ.setdefault("SHOPIFY_APP_API_SECRET", "test_secret")
os.environ.setdefault("SHOPIFY_APP_SCOPES", "read_products,write_inventory,read_locations")
os.environ.setdefault("SHOPIFY_INTERNAL_API_TOKEN", "internal_token")
os.environ.setdefault("SCANVENTORY_DB_URL", "sqlite:///./test_scanventory.db")

from fastapi.testclient import TestClient  # noqa: E402

import scanventory.main as main_module  # noqa: E402
from scanventory.db import build_engine, build_sessionmaker, get_session, init_db  # noqa: E402


@pytest.fixture()
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'scanventory_test.db'}")
    init_db(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(db_engine):
    session = build_sessionmaker(db_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def api_client(db_engine):
    TestingSessionLocal = build_sessionmaker(db_engine)

    def get_session_override():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    main_module.app.dependency_overrides[get_session] = get_session_override
    try:
        with TestClient(main_module.app) as client:
            yield client
    finally:
        main_module.app.dependency_overrides.pop(get_session, None)


@pytest.fixture()
def internal_headers() -> dict[str, str]:
    return {"Authorization": "Bearer internal_token"}
