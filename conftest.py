from __future__ import annotations

import os

import django
import pytest
import requests_mock as requests_mock_lib


os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret")
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings")

django.setup()

from backend.api import views  # noqa: E402
from backend.core import models  # noqa: E402


@pytest.fixture()
def requests_mock():
    with requests_mock_lib.Mocker() as mocker:
        yield mocker


@pytest.fixture(autouse=True)
def database(tmp_path) -> models.SessionFactory:
    """Fresh sqlite file per test; the API views pick it up through the engine."""
    models.configure_engine(f"sqlite:///{tmp_path / 'weather.db'}")
    return models.get_session_factory()


@pytest.fixture(autouse=True)
def health_registry():
    views.get_health_registry.cache_clear()
    yield views.get_health_registry()
    views.get_health_registry.cache_clear()
