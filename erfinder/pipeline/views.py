"""Alternative orderings and attribute filters over a ranked list."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from erfinder.common.deterministic import stable_sorted
from erfinder.common.geometry import Coordinates
from erfinder.common.models import Candidate
from erfinder.pipeline.ranking import rank_candidates

NEARBY_RADIUS_M = 10_000.0


class SortOption(str, Enum):
    RECOMMENDED = "RECOMMENDED"
    TIME = "TIME"
    DISTANCE = "DISTANCE"
    BEDS = "BEDS"


def sort_candidates(
    candidates: Sequence[Candidate],
    option: SortOption,
    origin: Coordinates | None = None,
) -> list[Candidate]:
    items = list(candidates)
    if len(items) <= 1:
        return items
    if option == SortOption.RECOMMENDED:
        return rank_candidates(items)
    if option == SortOption.TIME:
        # Candidates without a route go last, in their current order.
        return stable_sorted(
            items,
            key=lambda c: (c.route_duration is None, c.route_duration if c.route_duration is not None else 0.0),
        )
    if option == SortOption.DISTANCE:
        if origin is None:
            return items
        return stable_sorted(items, key=lambda c: c.distance_from(origin))
    if option == SortOption.BEDS:
        return stable_sorted(items, key=lambda c: (not c.is_operating, -c.available_beds, -c.availability_rate))
    return items


@dataclass(frozen=True)
class CandidateFilters:
    has_ct: bool = False
    has_mri: bool = False
    has_surgery: bool = False
    operating: bool = False
    has_available_beds: bool = False
    within_10km: bool = False

    @property
    def active(self) -> bool:
        return any(
            (self.has_ct, self.has_mri, self.has_surgery, self.operating, self.has_available_beds, self.within_10km)
        )


def _matches(candidate: Candidate, filters: CandidateFilters, origin: Coordinates | None) -> bool:
    if filters.has_ct and not candidate.has_ct:
        return False
    if filters.has_mri and not candidate.has_mri:
        return False
    if filters.has_surgery and not candidate.has_surgery:
        return False
    if filters.operating and not candidate.is_operating:
        return False
    if filters.has_available_beds and candidate.available_beds <= 0:
        return False
    if filters.within_10km and origin is not None and candidate.distance_from(origin) > NEARBY_RADIUS_M:
        return False
    return True


def apply_filters(
    candidates: Sequence[Candidate],
    filters: CandidateFilters,
    origin: Coordinates | None = None,
) -> list[Candidate]:
    if not filters.active:
        return list(candidates)
    return [candidate for candidate in candidates if _matches(candidate, filters, origin)]
