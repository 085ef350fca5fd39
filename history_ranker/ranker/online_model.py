"""Online logistic re-ranker over the seven ranking features."""

import math
import random

import structlog

from history_ranker.config.schemas import LearningConfig
from history_ranker.ranker.constants import FEATURE_NAMES, SIGMOID_CLIP
from history_ranker.ranker.models import FeatureVector, ModelWeights


logger = structlog.get_logger()

_TEXT = FEATURE_NAMES.index("text_match")


def sigmoid(x: float) -> float:
    """Numerically stable logistic function."""
    x = max(-SIGMOID_CLIP, min(SIGMOID_CLIP, x))
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def two_tier_score(weights: ModelWeights, features: FeatureVector, text_tier_scale: float) -> float:
    """Ranking score with the text term scaled into a dominant first tier.

    ``text_tier_scale * w_text * text_match + sum(w_i * f_i for contextual i) + bias``
    """
    score = weights.bias + text_tier_scale * weights.text_match * features.text_match
    for i, (w, f) in enumerate(zip(weights.values(), features.values(), strict=True)):
        if i != _TEXT:
            score += w * f
    return score


class OnlineRanker:
    """Linear model trained one click at a time with logistic loss.

    Two scores are exposed:

    - ``predict`` is the plain linear score ``bias + sum(w_i * f_i)``. It
      feeds the logistic link during training.
    - ``rank_score`` multiplies the text term by ``text_tier_scale`` so text
      relevance forms a dominant first tier and the contextual features only
      separate near-ties.

    The text weight never drops below ``text_weight_min``, so stronger text
    matches always contribute more than weaker ones. The frequency weight
    never drops below ``frequency_weight_min``, so a higher personal score
    never lowers a page.
    """

    def __init__(
        self,
        config: LearningConfig | None = None,
        seed: int | None = None,
    ) -> None:
        """Initialize weights from the priors plus uniform jitter.

        Args:
            config: Learning parameters.
            seed: Seed for the jitter; None draws from system entropy.
        """
        self._config = config or LearningConfig()
        rng = random.Random(seed)
        jitter = self._config.jitter
        priors = self._config.priors
        self._weights = [
            getattr(priors, name) + (rng.random() - 0.5) * jitter for name in FEATURE_NAMES
        ]
        self._bias = 0.0
        floors = {
            "text_match": self._config.text_weight_min,
            "frequency": self._config.frequency_weight_min,
        }
        self._floors = [floors.get(name, self._config.weight_min) for name in FEATURE_NAMES]
        self._clamp()
        self._log = logger.bind(component="ranker", subcomponent="online_model")

    @property
    def weights(self) -> ModelWeights:
        """Snapshot of the current weights."""
        return ModelWeights.from_values(self._bias, tuple(self._weights))

    def load(self, weights: ModelWeights) -> None:
        """Replace the current weights (clamped into bounds)."""
        self._weights = list(weights.values())
        self._bias = weights.bias
        self._clamp()

    def predict(self, features: FeatureVector) -> float:
        """Linear score used by the logistic link."""
        return self._bias + sum(
            w * f for w, f in zip(self._weights, features.values(), strict=True)
        )

    def rank_score(self, features: FeatureVector) -> float:
        """Two-tier ranking score under the current weights."""
        return two_tier_score(self.weights, features, self._config.text_tier_scale)

    def probability(self, features: FeatureVector) -> float:
        """Click probability under the logistic link."""
        return sigmoid(self.predict(features))

    def checkpoint(self) -> tuple[tuple[float, ...], float]:
        """Current raw weights and bias, for ``restore``."""
        return tuple(self._weights), self._bias

    def restore(self, state: tuple[tuple[float, ...], float]) -> None:
        """Return to weights captured by ``checkpoint``."""
        weights, bias = state
        self._weights = list(weights)
        self._bias = bias

    def update(self, features: FeatureVector, label: float, step_scale: float = 1.0) -> bool:
        """Take one gradient step towards ``label``.

        ``w_i += lr * (label - p) * f_i - lr * l2 * w_i`` and
        ``bias += lr * (label - p)``, followed by clamping. ``lr`` is the
        configured learning rate times ``step_scale``.

        Args:
            features: Feature vector of a displayed candidate.
            label: 1.0 for the clicked candidate, 0.0 otherwise.
            step_scale: Fraction of the learning rate to use.

        Returns:
            False if the step was discarded because it was not finite.
        """
        lr = self._config.learning_rate * step_scale
        l2 = self._config.l2
        error = label - self.probability(features)

        new_weights = [
            w + lr * error * f - lr * l2 * w
            for w, f in zip(self._weights, features.values(), strict=True)
        ]
        new_bias = self._bias + lr * error

        if not all(math.isfinite(w) for w in new_weights) or not math.isfinite(new_bias):
            self._log.warning("update_discarded", reason="non_finite", label=label)
            return False

        self._weights = new_weights
        self._bias = new_bias
        self._clamp()
        return True

    def _clamp(self) -> None:
        cfg = self._config
        self._weights = [
            max(floor, min(cfg.weight_max, w))
            for floor, w in zip(self._floors, self._weights, strict=True)
        ]
        self._bias = max(cfg.bias_min, min(cfg.bias_max, self._bias))
