"""Ranking configuration schema."""

from datetime import tzinfo
from typing import Annotated, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator

from history_ranker.data_model import StrictBaseModel


class Bm25Config(StrictBaseModel):
    """BM25 parameters for the title and URL fields.

    Attributes:
        k1: Term frequency saturation.
        b_title: Length normalization for titles.
        b_url: Length normalization for URLs.
        weight_title: Field weight for titles.
        weight_url: Field weight for URLs.
    """

    k1: Annotated[float, Field(ge=0.0, le=10.0)] = 1.2
    b_title: Annotated[float, Field(ge=0.0, le=1.0)] = 0.75
    b_url: Annotated[float, Field(ge=0.0, le=1.0)] = 0.75
    weight_title: Annotated[float, Field(ge=0.0, le=10.0)] = 1.0
    weight_url: Annotated[float, Field(ge=0.0, le=10.0)] = 2.0


class SubstringBonusConfig(StrictBaseModel):
    """Raw-query substring bonuses added to the text score."""

    url_prefix: Annotated[float, Field(ge=0.0, le=10.0)] = 2.0
    url_contains: Annotated[float, Field(ge=0.0, le=10.0)] = 1.0
    title_prefix: Annotated[float, Field(ge=0.0, le=10.0)] = 1.0
    title_contains: Annotated[float, Field(ge=0.0, le=10.0)] = 0.5


class FuzzyConfig(StrictBaseModel):
    """Fuzzy fallback used when no candidate has a text match.

    Attributes:
        enabled: Whether the fallback runs at all.
        algorithm: Similarity measure.
        threshold: Minimum similarity (0-1) for a match to count.
        min_query_length: Fallback only runs for queries longer than this.
    """

    enabled: bool = True
    algorithm: Literal["jaro_winkler", "levenshtein"] = "jaro_winkler"
    threshold: Annotated[float, Field(ge=0.0, le=1.0)] = 0.7
    min_query_length: Annotated[int, Field(ge=0, le=20)] = 2


class RecencyConfig(StrictBaseModel):
    """Multi-scale recency decay.

    Half-lives are in seconds.
    """

    short_half_life: Annotated[float, Field(gt=0.0)] = 2 * 3600.0
    medium_half_life: Annotated[float, Field(gt=0.0)] = 24 * 3600.0
    long_half_life: Annotated[float, Field(gt=0.0)] = 7 * 24 * 3600.0
    short_weight: Annotated[float, Field(ge=0.0, le=10.0)] = 1.0
    medium_weight: Annotated[float, Field(ge=0.0, le=10.0)] = 0.5
    long_weight: Annotated[float, Field(ge=0.0, le=10.0)] = 0.2
    dwell_scale_seconds: Annotated[float, Field(gt=0.0)] = 30.0
    dwell_max_boost: Annotated[float, Field(ge=0.0, le=5.0)] = 0.3


class TimeOfDayConfig(StrictBaseModel):
    """Hour-of-day histogram smoothing (0 disables smoothing)."""

    smoothing_alpha: Annotated[float, Field(ge=0.0, le=100.0)] = 0.0


class NavigationConfig(StrictBaseModel):
    """Transition table estimator."""

    smoothing: Literal["frequency", "beta", "beta_binomial"] = "frequency"
    prior_alpha: Annotated[float, Field(gt=0.0, le=100.0)] = 1.0
    prior_beta: Annotated[float, Field(gt=0.0, le=100.0)] = 1.0


class FeaturePriors(StrictBaseModel):
    """Initial feature weights before jitter is applied."""

    text_match: float = 1.0
    recency: float = 0.3
    frequency: float = 0.2
    navigation: float = 0.5
    time_of_day: float = 0.1
    session: float = 0.2
    regularity: float = 0.05


class LearningConfig(StrictBaseModel):
    """Online logistic re-ranker parameters.

    Attributes:
        learning_rate: Gradient step size.
        l2: L2 regularization strength.
        weight_min: Lower clamp for contextual weights.
        weight_max: Upper clamp for all weights.
        text_weight_min: Lower clamp for the text weight.
        frequency_weight_min: Lower clamp for the frequency weight, which also
            carries the personal score.
        bias_min: Lower clamp for the bias.
        bias_max: Upper clamp for the bias.
        text_tier_scale: Multiplier that makes text the dominant tier.
        jitter: Width of the uniform jitter added to the priors.
        priors: Initial weights.
    """

    learning_rate: Annotated[float, Field(gt=0.0, le=1.0)] = 0.01
    l2: Annotated[float, Field(ge=0.0, le=1.0)] = 1e-4
    weight_min: float = -1.0
    weight_max: float = 5.0
    text_weight_min: float = 0.05
    frequency_weight_min: float = 0.0
    bias_min: float = -3.0
    bias_max: float = 3.0
    text_tier_scale: Annotated[float, Field(gt=0.0, le=10000.0)] = 100.0
    jitter: Annotated[float, Field(ge=0.0, le=1.0)] = 0.01
    priors: FeaturePriors = Field(default_factory=FeaturePriors)

    @model_validator(mode="after")
    def validate_bounds(self) -> "LearningConfig":
        """Ensure clamp ranges are well formed."""
        if self.weight_min > self.weight_max:
            msg = "weight_min must not exceed weight_max"
            raise ValueError(msg)
        if not self.weight_min <= self.text_weight_min <= self.weight_max:
            msg = "text_weight_min must lie within [weight_min, weight_max]"
            raise ValueError(msg)
        if not self.weight_min <= self.frequency_weight_min <= self.weight_max:
            msg = "frequency_weight_min must lie within [weight_min, weight_max]"
            raise ValueError(msg)
        if self.bias_min > self.bias_max:
            msg = "bias_min must not exceed bias_max"
            raise ValueError(msg)
        return self


class FilterConfig(StrictBaseModel):
    """Sigmoid tail filter."""

    enabled: bool = True
    min_keep_probability: Annotated[float, Field(ge=0.0, le=1.0)] = 0.3
    single_token_max_score: Annotated[float, Field(ge=0.0)] = 0.3
    low_max_score: Annotated[float, Field(ge=0.0)] = 0.3


class FeedbackConfig(StrictBaseModel):
    """Personal score adjustments from clicks and impressions."""

    click_boost: Annotated[float, Field(ge=0.0, le=1.0)] = 0.10
    deep_click_boost: Annotated[float, Field(ge=0.0, le=1.0)] = 0.15
    deep_click_rank: Annotated[int, Field(ge=0)] = 3
    impression_decay: Annotated[float, Field(ge=0.0, le=1.0)] = 0.05


class RankingConfig(StrictBaseModel):
    """Root configuration for the ranking engine.

    Attributes:
        version: Schema version.
        tokenizer: Tokenizer variant for titles, URLs and queries.
        min_text_score: Text candidates below this score are dropped.
        timezone: IANA timezone for hour-of-day bucketing (None = system local).
        dedupe_results: Collapse results sharing a title or URL.
        weights_key: Metadata key under which model weights are persisted.
    """

    version: Annotated[str, Field(pattern=r"^\d+\.\d+$")] = "1.0"
    tokenizer: Literal["plain", "stemmed"] = "plain"
    min_text_score: Annotated[float, Field(ge=0.0)] = 0.5
    timezone: str | None = None
    dedupe_results: bool = True
    weights_key: Annotated[str, Field(min_length=1)] = "rankingModel"
    bm25: Bm25Config = Field(default_factory=Bm25Config)
    substring_bonus: SubstringBonusConfig = Field(default_factory=SubstringBonusConfig)
    fuzzy: FuzzyConfig = Field(default_factory=FuzzyConfig)
    recency: RecencyConfig = Field(default_factory=RecencyConfig)
    time_of_day: TimeOfDayConfig = Field(default_factory=TimeOfDayConfig)
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    feedback: FeedbackConfig = Field(default_factory=FeedbackConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        """Reject unknown IANA timezone names."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v

    def zone(self) -> tzinfo | None:
        """Timezone used for hour-of-day bucketing (None = system local)."""
        return ZoneInfo(self.timezone) if self.timezone else None
