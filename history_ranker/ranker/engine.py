"""History ranking engine: orchestration of retrieval, scoring and feedback."""

import math
import time
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from functools import partial
from threading import Lock
from typing import Any

import structlog
from pydantic import ValidationError

from history_ranker.config.schemas import RankingConfig
from history_ranker.data_model import ensure_aware
from history_ranker.observability.logging import bind_query_context, clear_query_context
from history_ranker.ranker.cache import DisplayedCandidateCache
from history_ranker.ranker.cancellation import CancellationToken
from history_ranker.ranker.constants import LOAD_POLL_SECONDS, LOAD_WORKERS, STEP_BACKOFF
from history_ranker.ranker.errors import (
    DataUnavailableError,
    LoadCancelledError,
    WeightPersistenceError,
)
from history_ranker.ranker.feedback import FeedbackRecorder
from history_ranker.ranker.metrics import RankerMetrics
from history_ranker.ranker.models import FeatureVector, ModelWeights, RankedPage
from history_ranker.ranker.online_model import OnlineRanker, two_tier_score
from history_ranker.ranker.relevance_filter import apply_relevance_filter
from history_ranker.ranker.snapshot import HistoryRecords, RankingSnapshot
from history_ranker.ranker.state_machine import QueryState
from history_ranker.store.models import Page
from history_ranker.store.protocols import HistoryRepository, ModelWeightStore


logger = structlog.get_logger()


@dataclass(frozen=True)
class _ScoredCandidate:
    page: Page
    features: FeatureVector
    score: float


def dedupe_by_title_and_url(candidates: Iterable[_ScoredCandidate]) -> list[_ScoredCandidate]:
    """Keep the first result for each title and each URL."""
    seen_titles: set[str] = set()
    seen_urls: set[str] = set()
    kept: list[_ScoredCandidate] = []
    for candidate in candidates:
        title, url = candidate.page.title, candidate.page.url
        if title in seen_titles or url in seen_urls:
            continue
        seen_titles.add(title)
        seen_urls.add(url)
        kept.append(candidate)
    return kept


def read_weight_record(store: ModelWeightStore, key: str) -> dict[str, Any] | None:
    """Fetch a stored weight record.

    Raises:
        WeightPersistenceError: If the store could not be read.
    """
    try:
        return store.get_model_weights(key)
    except Exception as e:  # noqa: BLE001
        raise WeightPersistenceError(key, f"load failed: {e}") from e


def write_weight_record(store: ModelWeightStore, key: str, record: dict[str, Any]) -> None:
    """Store a weight record.

    Raises:
        WeightPersistenceError: If the store rejected the write.
    """
    try:
        store.save_model_weights(key, record)
    except Exception as e:  # noqa: BLE001
        raise WeightPersistenceError(key, f"save failed: {e}") from e


class HistoryRanker:
    """Local personalized ranker over browsing history.

    Dependencies are injected: a ``HistoryRepository`` for the records and a
    ``ModelWeightStore`` for the learned weights (the repository itself is
    used when it implements both). ``rank`` and the feedback methods never
    raise; storage problems degrade to empty results or unsaved state and
    are logged.

    Threading:
        - ``rank`` scores against an immutable snapshot without locks. Each
          call takes a sequence number; a call that is no longer the newest
          when it finishes returns an empty list.
        - Weight updates are serialized by a lock. Saves run on a
          single-worker executor, in submission order.
        - Data loads read the four collections in parallel and honour a
          ``CancellationToken``.
    """

    def __init__(
        self,
        repository: HistoryRepository,
        weight_store: ModelWeightStore | None = None,
        config: RankingConfig | None = None,
        seed: int | None = None,
        metrics: RankerMetrics | None = None,
    ) -> None:
        """Initialize the ranker. Call ``initialize`` before ranking.

        Args:
            repository: Source of pages, visits, edges and sessions.
            weight_store: Persistence for model weights.
            config: Ranking configuration.
            seed: Seed for the initial weight jitter.
            metrics: Metrics sink (defaults to the shared instance).
        """
        self._repository = repository
        if weight_store is None and isinstance(repository, ModelWeightStore):
            weight_store = repository
        self._weight_store = weight_store
        self._config = config or RankingConfig()
        self._metrics = metrics or RankerMetrics.get_instance()

        self._snapshot = RankingSnapshot.empty(self._config)
        self._model = OnlineRanker(self._config.learning, seed=seed)
        self._model_lock = Lock()
        self._sequence = 0
        self._sequence_lock = Lock()
        self._load_lock = Lock()
        self._cache = DisplayedCandidateCache()
        self._feedback = FeedbackRecorder(repository, self._config.feedback, self._metrics)
        self._save_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="weights")
        self._initialized = False
        self._closed = False
        self._log = logger.bind(component="ranker")

    # ===== Lifecycle =====

    @property
    def is_initialized(self) -> bool:
        """Whether ``initialize`` has completed."""
        return self._initialized

    @property
    def config(self) -> RankingConfig:
        """Ranking configuration."""
        return self._config

    @property
    def snapshot(self) -> RankingSnapshot:
        """The snapshot currently used for scoring."""
        return self._snapshot

    @property
    def model_weights(self) -> ModelWeights:
        """Current model weights."""
        with self._model_lock:
            return self._model.weights

    def initialize(self, cancel_token: CancellationToken | None = None) -> None:
        """Load data, build indices and load persisted model weights.

        Args:
            cancel_token: Optional token to abandon the data load.

        Raises:
            LoadCancelledError: If the load was cancelled.
        """
        self._reload(cancel_token, reason="initialize")
        self._load_weights()
        self._initialized = True

    def refresh_data(self, cancel_token: CancellationToken | None = None) -> None:
        """Reload data and rebuild indices after external changes.

        Args:
            cancel_token: Optional token to abandon the data load.

        Raises:
            LoadCancelledError: If the load was cancelled; the previous
                snapshot stays in place.
        """
        self._reload(cancel_token, reason="refresh")

    def wait_for_pending_saves(self, timeout: float | None = None) -> None:
        """Block until every weight save submitted so far has run."""
        if self._closed:
            return
        self._save_executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        """Flush pending weight saves and release resources."""
        if self._closed:
            return
        self._closed = True
        self._save_executor.shutdown(wait=True)
        self._cache.clear()
        self._log.info("ranker_closed")

    def __enter__(self) -> "HistoryRanker":
        """Context manager entry (initializes the ranker)."""
        self.initialize()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    # ===== Data loading =====

    def _reload(self, cancel_token: CancellationToken | None, reason: str) -> None:
        token = cancel_token or CancellationToken()
        start_ns = time.perf_counter_ns()

        with self._load_lock:
            try:
                records = self._read_records(token)
                token.raise_if_cancelled("index")
                snapshot = RankingSnapshot.build(records, self._config)
                token.raise_if_cancelled("swap")
            except LoadCancelledError as e:
                self._log.info("data_load_cancelled", reason=reason, stage=e.stage)
                raise
            except DataUnavailableError as e:
                self._metrics.increment("data_load_failures_total")
                self._log.error(
                    "data_load_failed",
                    reason=reason,
                    source=e.source,
                    exc_info=True,
                )
                snapshot = RankingSnapshot.empty(self._config)

            self._snapshot = snapshot
            self._feedback.reset(snapshot.pages.values())

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_load_duration(duration_ms)
        self._log.info(
            "data_loaded",
            reason=reason,
            duration_ms=round(duration_ms, 2),
            **snapshot.counts,
        )

    def _read_records(self, token: CancellationToken) -> HistoryRecords:
        """Read all four collections concurrently.

        Raises:
            LoadCancelledError: If the token was cancelled while waiting.
            DataUnavailableError: If any read failed.
        """
        token.raise_if_cancelled("read")
        readers: dict[str, Callable[[], list[Any]]] = {
            "pages": self._repository.get_all_pages,
            "visits": self._repository.get_all_visits,
            "edges": self._repository.get_all_edges,
            "sessions": self._repository.get_all_sessions,
        }

        pool = ThreadPoolExecutor(max_workers=LOAD_WORKERS, thread_name_prefix="history-load")
        try:
            futures: dict[str, Future[list[Any]]] = {
                name: pool.submit(reader) for name, reader in readers.items()
            }
            pending = set(futures.values())
            while pending:
                token.raise_if_cancelled("read")
                _done, pending = wait(
                    pending, timeout=LOAD_POLL_SECONDS, return_when=FIRST_EXCEPTION
                )
                if any(f.done() and f.exception() is not None for f in futures.values()):
                    break
            token.raise_if_cancelled("read")

            results: dict[str, list[Any]] = {}
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except Exception as e:  # noqa: BLE001
                    raise DataUnavailableError(name, str(e)) from e
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return HistoryRecords(**results)

    # ===== Model weights =====

    def _load_weights(self) -> None:
        if self._weight_store is None:
            return
        key = self._config.weights_key
        try:
            record = read_weight_record(self._weight_store, key)
        except WeightPersistenceError as e:
            self._log.warning("weights_load_failed", key=e.key, error=str(e), exc_info=True)
            return

        if record is None:
            self._log.info("weights_not_found", key=key)
            return

        with self._model_lock:
            try:
                weights = ModelWeights.from_record(record, base=self._model.weights)
            except (ValidationError, TypeError) as e:
                self._log.warning("weights_invalid", key=key, error=str(e))
                return
            self._model.load(weights)
        self._log.info("weights_loaded", key=key)

    def _schedule_weight_save(self, record: dict[str, Any]) -> None:
        try:
            self._save_executor.submit(self._save_weights, record)
        except RuntimeError:
            self._log.warning("weights_save_skipped", reason="ranker_closed")

    def _save_weights(self, record: dict[str, Any]) -> None:
        if self._weight_store is None:
            return
        key = self._config.weights_key
        try:
            write_weight_record(self._weight_store, key, record)
        except WeightPersistenceError as e:
            self._metrics.increment("weight_save_failures_total")
            self._log.warning("weights_save_failed", key=e.key, error=str(e), exc_info=True)
            return
        self._metrics.increment("weight_saves_total")
        self._log.debug("weights_saved", key=key)

    # ===== Ranking =====

    def _next_sequence(self) -> int:
        with self._sequence_lock:
            self._sequence += 1
            return self._sequence

    def rank(
        self,
        query: str,
        current_page_id: str | None = None,
        now: datetime | None = None,
    ) -> list[RankedPage]:
        """Rank pages for a query.

        Args:
            query: Partial or complete query text.
            current_page_id: Page the user is currently on, if any.
            now: Reference time (defaults to the current time).

        Returns:
            Results sorted by descending score. Empty for a blank query, when
            no data is loaded, on internal failure, or when a newer query
            superseded this one.
        """
        if not query or not query.strip():
            self._metrics.increment("queries_empty")
            return []

        sequence = self._next_sequence()
        bind_query_context(sequence)
        try:
            return self._rank(sequence, query, current_page_id, now)
        except Exception:  # noqa: BLE001
            self._log.exception("rank_failed", query_length=len(query))
            return []
        finally:
            clear_query_context()

    def _superseded(self, sequence: int) -> list[RankedPage]:
        self._metrics.increment("queries_superseded")
        self._log.debug("query_superseded", sequence=sequence)
        return []

    def _rank(
        self,
        sequence: int,
        query: str,
        current_page_id: str | None,
        now: datetime | None,
    ) -> list[RankedPage]:
        start_ns = time.perf_counter_ns()
        lifecycle, _ = self._cache.begin(sequence)
        snapshot = self._snapshot
        now = ensure_aware(now) if now is not None else datetime.now(UTC)

        if snapshot.is_empty:
            self._log.debug("rank_without_data", initialized=self._initialized)

        matches = snapshot.text.compute_scores(query)
        if not self._cache.advance(lifecycle, QueryState.SCORING):
            return self._superseded(sequence)

        with self._model_lock:
            weights = self._model.weights
        scale = self._config.learning.text_tier_scale
        context = snapshot.session.context_for(current_page_id)

        scored: list[_ScoredCandidate] = []
        future_visits = 0
        fuzzy = False
        for match in matches:
            page = snapshot.pages.get(match.page_id)
            if page is None:
                continue
            fuzzy = fuzzy or match.fuzzy
            recency = snapshot.recency.score(page.page_id, now)
            future_visits += recency.future_visits
            personal = self._feedback.personal_score(page.page_id)
            if personal is None:
                personal = page.personal_score

            features = FeatureVector(
                text_match=match.score,
                recency=recency.value,
                frequency=math.log1p(page.visit_count) * (0.5 + personal),
                navigation=snapshot.navigation.transition_probability(
                    current_page_id, page.page_id
                ),
                time_of_day=snapshot.time_of_day.probability_at(page.page_id, now),
                session=context.weight(page.domain),
                regularity=snapshot.regularity.score(page.page_id),
            )
            scored.append(_ScoredCandidate(page, features, two_tier_score(weights, features, scale)))

        scored.sort(key=lambda c: (-c.score, c.page.page_id))
        if not self._cache.advance(lifecycle, QueryState.FILTERING):
            return self._superseded(sequence)

        kept = apply_relevance_filter(
            scored,
            score_of=lambda c: c.score,
            token_count=len(query.split()),
            config=self._config.filter,
        )
        final = dedupe_by_title_and_url(kept) if self._config.dedupe_results else kept

        published = self._cache.publish(
            lifecycle,
            {c.page.page_id: c.features for c in final},
            token_count=len(query.split()),
        )
        if not published:
            return self._superseded(sequence)

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_rank(
            candidates=len(scored),
            filtered_out=len(scored) - len(kept),
            duplicates=len(kept) - len(final),
            duration_ms=duration_ms,
        )
        if fuzzy:
            self._metrics.increment("fuzzy_fallbacks_total")
        if future_visits:
            self._metrics.increment("future_visits_skipped_total", future_visits)
            self._log.warning("future_visits_skipped", count=future_visits)

        self._log.info(
            "rank_complete",
            candidates=len(scored),
            results=len(final),
            fuzzy=fuzzy,
            duration_ms=round(duration_ms, 2),
        )
        return [
            RankedPage(
                page_id=c.page.page_id,
                title=c.page.title,
                url=c.page.url,
                score=c.score,
            )
            for c in final
        ]

    # ===== Feedback =====

    def record_user_click(self, page_id: str, displayed_ids: Iterable[str]) -> None:
        """Reward a clicked result and train the model on the displayed set.

        The clicked page is a positive example, every other displayed page a
        negative one, using the features from the ``rank`` call that
        displayed them. Clicks on pages absent from ``displayed_ids`` are
        ignored. Clicks against a superseded result set change nothing;
        further clicks on an already-trained set only update the personal
        score.

        The training step is scaled back (and finally rejected) if it would
        move the clicked page below a page it currently outranks, or out of
        the filtered results.

        Args:
            page_id: Clicked page.
            displayed_ids: Page ids in the order they were displayed.
        """
        try:
            self._record_click(page_id, list(displayed_ids))
        except Exception:  # noqa: BLE001
            self._log.exception("click_failed", page_id=page_id)

    def _record_click(self, page_id: str, displayed: list[str]) -> None:
        if page_id not in displayed:
            self._log.debug("click_ignored", page_id=page_id, reason="not_displayed")
            return

        rank = displayed.index(page_id)
        self._metrics.increment("clicks_total")

        claim = self._cache.claim_for_click(page_id, displayed)
        if not claim.current:
            self._metrics.increment("training_skipped_total")
            self._log.info("training_skipped", page_id=page_id, reason="stale_result_set")
            return

        personal = self._feedback.record_click(page_id, rank)
        if claim.features is None:
            self._metrics.increment("training_skipped_total")
            self._log.info("training_skipped", page_id=page_id, reason="already_trained")
            return

        features = claim.features
        negatives = [features[pid] for pid in displayed if pid != page_id and pid in features]
        clicked = self._clicked_features(page_id, features[page_id], personal)
        applied, step_scale, record = self._guarded_step(
            page_id, clicked, features, claim.token_count, features[page_id], negatives
        )

        self._metrics.increment("training_updates_total", applied)
        if record is None:
            self._metrics.increment("training_rejected_total")
            self._log.info("training_rejected", page_id=page_id, rank=rank)
            return
        self._log.info(
            "model_trained",
            page_id=page_id,
            rank=rank,
            updates=applied,
            step_scale=step_scale,
        )
        self._schedule_weight_save(record)

    def _clicked_features(
        self, page_id: str, shown: FeatureVector, personal: float | None
    ) -> FeatureVector:
        """Clicked page's features with its frequency after the click boost."""
        page = self._snapshot.pages.get(page_id)
        if personal is None or page is None:
            return shown
        return replace(shown, frequency=math.log1p(page.visit_count) * (0.5 + personal))

    def _guarded_step(
        self,
        page_id: str,
        clicked: FeatureVector,
        features: dict[str, FeatureVector],
        token_count: int,
        positive: FeatureVector,
        negatives: list[FeatureVector],
    ) -> tuple[int, float, dict[str, Any] | None]:
        """Apply the largest backed-off step that keeps the clicked page in place.

        Returns:
            Applied updates, the step scale used and the new weight record;
            ``(0, 0.0, None)`` when every scale was rejected.
        """
        scale = self._config.learning.text_tier_scale

        def score_of(weights: ModelWeights, pid: str) -> float:
            vector = clicked if pid == page_id else features[pid]
            return two_tier_score(weights, vector, scale)

        with self._model_lock:
            before = self._model.weights
            own = score_of(before, page_id)
            outranked = [
                pid
                for pid in features
                if pid != page_id and (-own, page_id) < (-score_of(before, pid), pid)
            ]
            checkpoint = self._model.checkpoint()

            for step_scale in STEP_BACKOFF:
                applied = int(self._model.update(positive, 1.0, step_scale))
                for vector in negatives:
                    applied += int(self._model.update(vector, 0.0, step_scale))

                after = self._model.weights
                if applied and self._keeps_position(
                    page_id, outranked, features, token_count, partial(score_of, after)
                ):
                    return applied, step_scale, after.to_record()
                self._model.restore(checkpoint)

        return 0, 0.0, None

    def _keeps_position(
        self,
        page_id: str,
        outranked: list[str],
        features: dict[str, FeatureVector],
        token_count: int,
        score_of: Callable[[str], float],
    ) -> bool:
        own = score_of(page_id)
        if any((-own, page_id) > (-score_of(pid), pid) for pid in outranked):
            return False
        ranked = sorted(features, key=lambda pid: (-score_of(pid), pid))
        kept = apply_relevance_filter(
            ranked,
            score_of=score_of,
            token_count=token_count,
            config=self._config.filter,
        )
        return page_id in kept

    def record_impressions(self, page_ids: Iterable[str]) -> None:
        """Gently decay the personal scores of shown pages (no training).

        Args:
            page_ids: Pages that were shown.
        """
        try:
            ids = list(page_ids)
            updated = self._feedback.record_impressions(ids)
            self._cache.mark_impressed()
            self._metrics.increment("impressions_total", len(ids))
            self._log.debug("impressions_recorded", shown=len(ids), updated=len(updated))
        except Exception:  # noqa: BLE001
            self._log.exception("impressions_failed")
