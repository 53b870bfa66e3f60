"""Last-known-good snapshot of a ranked result set."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Protocol

from erfinder.common.errors import CandidateValidationError, SnapshotQuotaError, SnapshotStoreError
from erfinder.common.fs import write_bytes_atomic
from erfinder.common.geometry import Coordinates
from erfinder.common.logging import log_event
from erfinder.common.models import Candidate
from erfinder.common.time_utils import age_minutes, parse_iso, utc_now

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotStore(Protocol):
    def get(self) -> bytes | None: ...

    def set(self, data: bytes) -> None: ...

    def clear(self) -> None: ...


class FileSnapshotStore:
    def __init__(self, path: Path, *, max_bytes: int | None = None) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes

    def get(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise SnapshotStoreError(f"Cannot read snapshot {self.path}: {exc}") from exc

    def set(self, data: bytes) -> None:
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise SnapshotQuotaError(f"Snapshot of {len(data)} bytes exceeds limit of {self.max_bytes}")
        try:
            write_bytes_atomic(self.path, data)
        except OSError as exc:
            raise SnapshotStoreError(f"Cannot write snapshot {self.path}: {exc}") from exc

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class MemorySnapshotStore:
    def __init__(self, *, max_bytes: int | None = None) -> None:
        self.max_bytes = max_bytes
        self.data: bytes | None = None
        self.lock = threading.Lock()

    def get(self) -> bytes | None:
        with self.lock:
            return self.data

    def set(self, data: bytes) -> None:
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise SnapshotQuotaError(f"Snapshot of {len(data)} bytes exceeds limit of {self.max_bytes}")
        with self.lock:
            self.data = data

    def clear(self) -> None:
        with self.lock:
            self.data = None


@dataclass(frozen=True)
class CachedSnapshot:
    candidates: list[Candidate]
    is_fresh: bool
    age_minutes: int
    region: str


@dataclass(frozen=True)
class SnapshotStatus:
    exists: bool
    age_minutes: int | None
    candidate_count: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "exists": self.exists,
            "age_minutes": self.age_minutes,
            "candidate_count": self.candidate_count,
        }


class SnapshotCache:
    def __init__(
        self,
        store: SnapshotStore,
        *,
        max_age_minutes: float = 30,
        fresh_minutes: float = 5,
        max_distance_km: float = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.max_age_minutes = max_age_minutes
        self.fresh_minutes = fresh_minutes
        self.max_distance_m = max_distance_km * 1000
        self.clock = clock

    def _encode(self, candidates: list[Candidate], origin: Coordinates, region: str) -> bytes:
        payload = {
            "version": SNAPSHOT_VERSION,
            "saved_at": self.clock().isoformat(),
            "origin": {"lat": origin.lat, "lon": origin.lon},
            "region": region,
            "candidates": [candidate.to_dict() for candidate in candidates],
        }
        return json.dumps(payload, ensure_ascii=False, sort_keys=True).encode("utf-8")

    def _decode(self) -> dict[str, Any] | None:
        raw = self.store.get()
        if raw is None:
            return None
        payload = json.loads(raw.decode("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("snapshot payload is not an object")
        return payload

    def save(self, candidates: list[Candidate], origin: Coordinates, region: str) -> bool:
        """Persist the ranked list; failures clear the old blob and are never raised."""
        try:
            self.store.set(self._encode(candidates, origin, region))
        except (SnapshotStoreError, OSError) as exc:
            error_code = getattr(exc, "error_code", "SNAPSHOT_STORE_ERROR")
            log_event(
                logger,
                f"snapshot write failed: {exc}",
                level=logging.WARNING,
                stage="snapshot",
                region=region,
                event="SNAPSHOT_WRITE_FAIL",
                status="cleared",
                error_code=error_code,
            )
            self.clear()
            return False

        log_event(
            logger,
            "snapshot saved",
            stage="snapshot",
            region=region,
            event="SNAPSHOT_SAVED",
            status="ok",
            rows_out=len(candidates),
        )
        return True

    def load(self, current_origin: Coordinates) -> CachedSnapshot | None:
        try:
            payload = self._decode()
            if payload is None:
                return None
            saved_at = parse_iso(payload["saved_at"])
            age = age_minutes(saved_at, self.clock())
            if age > self.max_age_minutes:
                log_event(logger, "snapshot expired", stage="snapshot", event="SNAPSHOT_EXPIRED", status="cleared")
                self.clear()
                return None

            origin = Coordinates.from_dict(payload["origin"])
            if current_origin.distance_to(origin) > self.max_distance_m:
                # Kept on disk: it is still valid for searches near its own origin.
                log_event(logger, "snapshot too far from origin", stage="snapshot", event="SNAPSHOT_TOO_FAR", status="miss")
                return None

            candidates = [Candidate.from_dict(item) for item in payload["candidates"]]
        except (SnapshotStoreError, ValueError, KeyError, TypeError, CandidateValidationError) as exc:
            log_event(
                logger,
                f"snapshot unreadable: {exc}",
                level=logging.WARNING,
                stage="snapshot",
                event="SNAPSHOT_CORRUPT",
                status="cleared",
                error_code="SNAPSHOT_CORRUPT",
            )
            self.clear()
            return None

        return CachedSnapshot(
            candidates=candidates,
            is_fresh=age < self.fresh_minutes,
            age_minutes=round(age),
            region=str(payload.get("region", "")),
        )

    def clear(self) -> None:
        try:
            self.store.clear()
        except OSError as exc:
            log_event(
                logger,
                f"snapshot clear failed: {exc}",
                level=logging.WARNING,
                stage="snapshot",
                event="SNAPSHOT_CLEAR_FAIL",
                status="error",
            )

    def status(self) -> SnapshotStatus:
        try:
            payload = self._decode()
            if payload is None:
                return SnapshotStatus(exists=False, age_minutes=None, candidate_count=None)
            age = age_minutes(parse_iso(payload["saved_at"]), self.clock())
            return SnapshotStatus(exists=True, age_minutes=round(age), candidate_count=len(payload["candidates"]))
        except (SnapshotStoreError, ValueError, KeyError, TypeError):
            return SnapshotStatus(exists=False, age_minutes=None, candidate_count=None)
