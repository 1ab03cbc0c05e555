"""Level normalization and noise categories."""

from enum import Enum

MIN_RAW_LEVEL = -80.0
MAX_RAW_LEVEL = 0.0
SCALE_MAX = 120.0

# Raw level reported while nothing has been sampled
SILENT_RAW_LEVEL = -160.0
SILENT_LEVEL = 0.0


class NoiseCategory(Enum):
    """Qualitative noise categories, ordered from quietest to loudest."""
    QUIET = "Quiet"
    MODERATE = "Moderate"
    LOUD = "Loud"
    VERY_LOUD = "Very Loud"
    DANGEROUS = "Dangerous"
    EXTREME = "Extreme"


# Lower bound of each category; a category covers [bound, next bound)
_CATEGORY_BOUNDS = (
    (30.0, NoiseCategory.QUIET),
    (50.0, NoiseCategory.MODERATE),
    (70.0, NoiseCategory.LOUD),
    (90.0, NoiseCategory.VERY_LOUD),
    (SCALE_MAX, NoiseCategory.DANGEROUS),
)


def normalize_level(raw_level: float,
                    min_raw: float = MIN_RAW_LEVEL,
                    max_raw: float = MAX_RAW_LEVEL) -> float:
    """Map a raw level (dBFS) onto the 0-120 display scale.

    Out-of-domain inputs are clamped to the calibrated domain first, so the
    result always lies in [0, 120].
    """
    clamped = max(min_raw, min(max_raw, raw_level))
    return (clamped - min_raw) / (max_raw - min_raw) * SCALE_MAX


def classify_level(level: float) -> NoiseCategory:
    """Return the category whose half-open interval contains ``level``."""
    for upper, category in _CATEGORY_BOUNDS:
        if level < upper:
            return category
    return NoiseCategory.EXTREME


class LevelNormalizer:
    """Normalizer bound to a calibrated raw domain."""

    def __init__(self, min_raw: float = MIN_RAW_LEVEL, max_raw: float = MAX_RAW_LEVEL):
        if max_raw <= min_raw:
            raise ValueError(f"Invalid raw level domain: [{min_raw}, {max_raw}]")
        self.min_raw = min_raw
        self.max_raw = max_raw

    def normalize(self, raw_level: float) -> float:
        return normalize_level(raw_level, self.min_raw, self.max_raw)

    def classify(self, level: float) -> NoiseCategory:
        return classify_level(level)
