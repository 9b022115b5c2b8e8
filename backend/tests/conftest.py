"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Keep the suite independent from any local document store or model endpoint.
os.environ["COUCHDB_URL"] = ""
os.environ["VISION_API_URL"] = ""
os.environ["STATIC_ROOT"] = ""

from app.main import app


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def client() -> Iterator[TestClient]:
    """Yield a FastAPI TestClient running the application lifespan."""

    with TestClient(app) as test_client:
        yield test_client
