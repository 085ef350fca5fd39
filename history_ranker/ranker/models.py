"""Data models for the history ranker."""

from dataclasses import astuple, dataclass
from typing import Annotated, Any

from pydantic import Field

from history_ranker.data_model import StrictBaseModel
from history_ranker.ranker.constants import FEATURE_NAMES, RECORD_KEYS


FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


@dataclass(frozen=True)
class FeatureVector:
    """Ranking features of one candidate for one query.

    Attributes:
        text_match: BM25 (or fuzzy) text score.
        recency: Multi-scale recency decay.
        frequency: ``ln(1 + visit_count) * (0.5 + personal_score)``.
        navigation: Transition probability from the current page.
        time_of_day: Share of visits in the current hour.
        session: ``ln(1 + domain visits)`` in the current session.
        regularity: Visit periodicity score.
    """

    text_match: float = 0.0
    recency: float = 0.0
    frequency: float = 0.0
    navigation: float = 0.0
    time_of_day: float = 0.0
    session: float = 0.0
    regularity: float = 0.5

    def values(self) -> tuple[float, ...]:
        """Feature values in ``FEATURE_NAMES`` order."""
        return astuple(self)

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary of feature name to value.
        """
        return dict(zip(FEATURE_NAMES, self.values(), strict=True))


class RankedPage(StrictBaseModel):
    """A ranked result returned to the caller."""

    page_id: str
    title: str
    url: str
    score: float


class ModelWeights(StrictBaseModel):
    """Bias plus one weight per feature.

    Persisted as ``{"bias": b, "weights": {"textMatch": w, ...}}``.
    """

    bias: FiniteFloat = 0.0
    text_match: FiniteFloat = 1.0
    recency: FiniteFloat = 0.0
    frequency: FiniteFloat = 0.0
    navigation: FiniteFloat = 0.0
    time_of_day: FiniteFloat = 0.0
    session: FiniteFloat = 0.0
    regularity: FiniteFloat = 0.0

    def values(self) -> tuple[float, ...]:
        """Feature weights in ``FEATURE_NAMES`` order (bias excluded)."""
        return tuple(getattr(self, name) for name in FEATURE_NAMES)

    def to_record(self) -> dict[str, Any]:
        """Flat record used for persistence.

        Returns:
            ``{"bias": float, "weights": {record_key: float}}``.
        """
        return {
            "bias": self.bias,
            "weights": {RECORD_KEYS[name]: getattr(self, name) for name in FEATURE_NAMES},
        }

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        base: "ModelWeights | None" = None,
    ) -> "ModelWeights":
        """Build weights from a persisted record.

        Keys missing from the record keep the value from ``base``.

        Args:
            record: Persisted record.
            base: Weights supplying defaults for missing keys.

        Returns:
            Validated weights.

        Raises:
            pydantic.ValidationError: If a value is not a finite number.
        """
        data = (base or cls()).model_dump()
        if "bias" in record:
            data["bias"] = record["bias"]
        raw_weights = record.get("weights") or {}
        if not isinstance(raw_weights, dict):
            msg = "weights must be a mapping"
            raise TypeError(msg)
        for name in FEATURE_NAMES:
            key = RECORD_KEYS[name]
            if key in raw_weights:
                data[name] = raw_weights[key]
        return cls.model_validate(data)

    @classmethod
    def from_values(cls, bias: float, values: tuple[float, ...]) -> "ModelWeights":
        """Build weights from a bias and ``FEATURE_NAMES``-ordered values."""
        return cls(bias=bias, **dict(zip(FEATURE_NAMES, values, strict=True)))
