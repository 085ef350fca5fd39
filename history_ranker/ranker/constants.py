"""Constants for the ranker module."""

# Feature order used for weight vectors and training
FEATURE_NAMES: tuple[str, ...] = (
    "text_match",
    "recency",
    "frequency",
    "navigation",
    "time_of_day",
    "session",
    "regularity",
)

# Keys of the persisted weight record, by feature name
RECORD_KEYS: dict[str, str] = {
    "text_match": "textMatch",
    "recency": "recency",
    "frequency": "frequency",
    "navigation": "navigation",
    "time_of_day": "timeOfDay",
    "session": "session",
    "regularity": "regularity",
}

# Workers used to read pages, visits, edges and sessions concurrently
LOAD_WORKERS: int = 4

# Poll interval (seconds) while waiting on a cancellable data load
LOAD_POLL_SECONDS: float = 0.05

# Cap on a single sigmoid exponent, keeps math.exp in range
SIGMOID_CLIP: float = 500.0

# Learning-rate fractions tried, in order, for a click's training step
STEP_BACKOFF: tuple[float, ...] = (1.0, 0.5, 0.25, 0.125, 0.0625)
