"""Application constants."""

USER_AGENT = "erfinder/1.0 (+emergency-facility-search)"

EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20

FEED_SUCCESS_CODE = "00"
MEDICAL_CATEGORY_CODE = "HP8"
MEDICAL_CATEGORY_TERMS = ("병원", "의료")
ROUTE_PRIORITIES = ("RECOMMEND", "TIME", "DISTANCE")

DEFAULT_ROUTE_TOP_K = 10
DEFAULT_MAX_DISTANCE_KM = 100.0
DEFAULT_STALE_AFTER_MINUTES = 5
DEFAULT_MIN_GEOCODE_INTERVAL_SECONDS = 0.15
DEFAULT_ESTIMATED_AVAILABLE_RATIO = 0.3
DEFAULT_NO_DATA_MARKERS = (
    "정보 없음",
    "미제공",
    "병원명 없음",
    "테스트 데이터",
    "no information available",
)
DEFAULT_FALLBACK_LOCATION = (37.5663, 126.9779)
DEFAULT_PLAUSIBLE_BBOX = {
    "min_lat": 33.0,
    "max_lat": 39.0,
    "min_lon": 124.0,
    "max_lon": 132.0,
}

JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "region",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "candidate_id",
    "message",
)
