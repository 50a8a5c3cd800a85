import os

# The app builds its engine at import time; point it at an in-memory database
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from cat_tracker.database import Base, make_engine, make_session_factory
from cat_tracker.errors import ExtractionFailed
from cat_tracker.features import FeatureRecord
from cat_tracker.main import app, get_extractor, get_store
from cat_tracker.reconciliation import ReconciliationCoordinator
from cat_tracker.store import CatalogStore

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeExtractor:
    """Returns a fixed FeatureRecord (or raises a fixed error) and records every call."""

    def __init__(self, features=None, error=None):
        self.features = features
        self.error = error
        self.calls = []

    def extract(self, image_bytes, location_hint=None, timeout=None):
        self.calls.append({"image_bytes": image_bytes, "location_hint": location_hint, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.features


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture
def whiskers_features():
    """Features of the reference cat used across the suite."""
    return FeatureRecord(
        breed="domestic_shorthair",
        colors=["orange", "white"],
        patterns=["tabby"],
        distinctive_features=["white paws"],
        estimated_age="adult",
        size="medium",
    )


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return CatalogStore(session_factory)


@pytest.fixture
def extractor(whiskers_features):
    return FakeExtractor(features=whiskers_features)


@pytest.fixture
def failing_extractor():
    return FakeExtractor(error=ExtractionFailed("Feature extraction timed out"))


@pytest.fixture
def coordinator(extractor, store):
    return ReconciliationCoordinator(extractor, store, extraction_timeout=5.0)


@pytest.fixture
def client(store, extractor):
    """TestClient with the store and extractor swapped for test doubles."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_extractor] = lambda: extractor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
