from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from erfinder.common.geometry import Coordinates
from erfinder.common.logging import ROOT_LOGGER_NAME
from erfinder.common.models import Candidate

NOW = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)


def build_candidate(**overrides) -> Candidate:
    fields = {
        "id": "H1",
        "name": "Test Hospital",
        "coordinates": Coordinates(37.5665, 126.978),
        "address": "서울 중구 세종대로 110",
        "phone_number": "02-123-4567",
        "emergency_phone_number": None,
        "available_beds": 10,
        "total_beds": 20,
        "has_ct": True,
        "has_mri": False,
        "has_surgery": False,
        "trauma_level": None,
        "is_operating": True,
        "last_updated": NOW,
    }
    fields.update(overrides)
    return Candidate(**fields)


@pytest.fixture
def make_candidate():
    return build_candidate


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture(autouse=True)
def _reset_pipeline_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
