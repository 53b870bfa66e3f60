"""Deterministic weighted ranking of candidates.

Weights: travel time 40, beds 30, trauma level 20, operating status 10.
Every function here is pure; ranking the same list twice yields the same order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from erfinder.common.deterministic import stable_sorted
from erfinder.common.models import AvailabilityStatus, Candidate
from erfinder.common.scoring import clamp, lerp_descending

TIME_WEIGHT = 40.0
MISSING_TIME_SCORE = 20.0
TRAUMA_SCORES = {1: 20.0, 2: 15.0, 3: 10.0}
NO_TRAUMA_SCORE = 5.0
OPERATING_SCORE = 10.0


@dataclass(frozen=True)
class ScoreBreakdown:
    time: float
    beds: float
    trauma: float
    operating: float

    @property
    def total(self) -> float:
        return clamp(self.time + self.beds + self.trauma + self.operating, minimum=0.0, maximum=100.0)

    def to_dict(self) -> dict[str, float]:
        return {
            "time": self.time,
            "beds": self.beds,
            "trauma": self.trauma,
            "operating": self.operating,
            "total": self.total,
        }


def time_score(candidate: Candidate, all_candidates: Sequence[Candidate]) -> float:
    if candidate.route_duration is None:
        return MISSING_TIME_SCORE
    durations = [c.route_duration for c in all_candidates if c.route_duration is not None]
    if len(durations) <= 1:
        return TIME_WEIGHT
    return lerp_descending(candidate.route_duration, low=min(durations), high=max(durations), maximum=TIME_WEIGHT)


def bed_score(candidate: Candidate) -> float:
    status = candidate.availability_status
    if status == AvailabilityStatus.AVAILABLE:
        return 20.0 + 10.0 * candidate.availability_rate
    if status == AvailabilityStatus.LIMITED:
        return 15.0
    if status == AvailabilityStatus.FULL:
        return 0.0
    return 10.0


def trauma_score(candidate: Candidate) -> float:
    if candidate.trauma_level is None:
        return NO_TRAUMA_SCORE
    return TRAUMA_SCORES.get(candidate.trauma_level, NO_TRAUMA_SCORE)


def operating_score(candidate: Candidate) -> float:
    return OPERATING_SCORE if candidate.is_operating else 0.0


def score_breakdown(candidate: Candidate, all_candidates: Sequence[Candidate]) -> ScoreBreakdown:
    return ScoreBreakdown(
        time=time_score(candidate, all_candidates),
        beds=bed_score(candidate),
        trauma=trauma_score(candidate),
        operating=operating_score(candidate),
    )


def score_candidate(candidate: Candidate, all_candidates: Sequence[Candidate]) -> float:
    return score_breakdown(candidate, all_candidates).total


def rank_candidates(candidates: Sequence[Candidate]) -> list[Candidate]:
    """Sort by total score descending; equal scores keep their input order."""
    pool = list(candidates)
    scores = {id(c): score_candidate(c, pool) for c in pool}
    return stable_sorted(pool, key=lambda c: scores[id(c)], reverse=True)
