"""Search run identifiers."""

from __future__ import annotations

from datetime import datetime

from erfinder.common.time_utils import utc_now

RUN_ID_PREFIX = "search"


def generate_run_id(now: datetime | None = None) -> str:
    """Sortable id tying every log line of one search together."""
    stamp = (now or utc_now()).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{RUN_ID_PREFIX}-{stamp}"
