"""
AI rewrite orchestrator.

Rewrites selected bullets for a job description through a TextProvider:
cache first, then bounded concurrent provider calls with retry, a per-run
circuit breaker and caller-controlled cancellation. A bullet that cannot be
rewritten keeps its original text and is flagged as degraded.
"""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterator, Optional

from loguru import logger
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
    wait_random,
)

from generator.cache import RewriteCache, make_cache_key
from generator.prompts import build_context, build_rewrite_prompt, clean_bullet
from matcher.skills import required_keywords
from shared.config import Settings, get_settings
from shared.exceptions import ProviderError, ProviderPermanentError, ProviderTransientError, ValidationError
from shared.models import Bullet, JobSpec, TokenUsage
from shared.ports import TextProvider

POLL_INTERVAL = 0.05

SOURCE_CACHE = "cache"
SOURCE_PROVIDER = "provider"
SOURCE_FALLBACK = "fallback"


class _Cancelled(Exception):
    """Raised inside a worker once the batch has been cancelled."""


class _CircuitOpen(Exception):
    """Raised inside a worker once the breaker has opened."""


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for transient provider failures."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValidationError("must be at least 1", field="max_attempts")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValidationError("delays must be non-negative", field="base_delay")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.rewrite_max_attempts,
            base_delay=settings.rewrite_base_delay,
            max_delay=settings.rewrite_max_delay,
        )

    def wait(self):
        """Exponential backoff from base_delay capped at max_delay, plus up to base_delay of jitter."""
        return wait_exponential(multiplier=self.base_delay, max=self.max_delay) + wait_random(0, self.base_delay)


class ProviderGate:
    """Bounds provider calls in flight. One instance is shared per process."""

    def __init__(self, max_in_flight: int):
        if max_in_flight < 1:
            raise ValidationError("must be at least 1", field="max_in_flight")
        self.capacity = max_in_flight
        self._semaphore = threading.BoundedSemaphore(max_in_flight)

    @contextmanager
    def slot(self, stop: threading.Event) -> Iterator[None]:
        """Hold one in-flight slot; gives up when the batch is cancelled."""
        while not self._semaphore.acquire(timeout=POLL_INTERVAL):
            if stop.is_set():
                raise _Cancelled()
        try:
            yield
        finally:
            self._semaphore.release()


@lru_cache
def get_provider_gate() -> ProviderGate:
    """Get the process-wide provider gate."""
    return ProviderGate(get_settings().rewrite_max_in_flight)


class CircuitBreaker:
    """Opens after a run of consecutive failures. Thread-safe."""

    def __init__(self, threshold: int):
        if threshold < 1:
            raise ValidationError("must be at least 1", field="breaker_threshold")
        self.threshold = threshold
        self._failures = 0
        self._open = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._open

    def record_success(self) -> None:
        with self._lock:
            if not self._open:
                self._failures = 0

    def record_failure(self) -> bool:
        """Count a failure. Returns True if this failure opened the breaker."""
        with self._lock:
            self._failures += 1
            if not self._open and self._failures >= self.threshold:
                self._open = True
                return True
            return False


@dataclass
class RewriteOutcome:
    """What happened to one bullet."""

    bullet_id: str
    text: str
    source: str
    degraded: bool = False
    attempts: int = 0
    error: Optional[str] = None
    permanent: bool = False
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class RewriteBatch:
    """Result of rewriting a set of bullets."""

    texts: dict[str, str] = field(default_factory=dict)
    outcomes: dict[str, RewriteOutcome] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    breaker_open: bool = False
    cancelled: bool = False

    @property
    def degraded_ids(self) -> list[str]:
        return [bid for bid, outcome in self.outcomes.items() if outcome.degraded]

    @property
    def errors(self) -> dict[str, str]:
        return {bid: o.error for bid, o in self.outcomes.items() if o.error}


class RewriteOrchestrator:
    """Rewrites bullets concurrently with cache, retry and circuit breaking."""

    def __init__(
        self,
        provider: TextProvider,
        cache: RewriteCache,
        gate: Optional[ProviderGate] = None,
        retry_policy: Optional[RetryPolicy] = None,
        breaker_threshold: int = 5,
    ):
        if breaker_threshold < 1:
            raise ValidationError("must be at least 1", field="breaker_threshold")
        self.provider = provider
        self.cache = cache
        self.gate = gate or get_provider_gate()
        self.retry_policy = retry_policy or RetryPolicy()
        self.breaker_threshold = breaker_threshold

    @classmethod
    def from_settings(
        cls, provider: TextProvider, cache: RewriteCache, settings: Optional[Settings] = None
    ) -> "RewriteOrchestrator":
        settings = settings or get_settings()
        return cls(
            provider=provider,
            cache=cache,
            retry_policy=RetryPolicy.from_settings(settings),
            breaker_threshold=settings.rewrite_breaker_threshold,
        )

    def rewrite_all(
        self,
        bullets: list[Bullet],
        job_spec: JobSpec,
        target_language: str = "en",
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RewriteBatch:
        """
        Rewrite bullets for a job description.

        Args:
            bullets: Selected bullets, in resume order
            job_spec: Target job
            target_language: Language code of the output
            deadline: Seconds the whole batch may take
            cancel_event: Set by the caller to abandon the batch

        Returns:
            RewriteBatch keyed by bullet ID; never raises for provider failures
        """
        started = time.monotonic()
        batch = RewriteBatch()
        outcomes: dict[str, RewriteOutcome] = {}

        pending_bullets: list[tuple[Bullet, str]] = []
        for bullet in bullets:
            key = make_cache_key(bullet.content, job_spec.description, target_language)
            text, found = self.cache.get(key)
            if found:
                outcomes[bullet.id] = RewriteOutcome(bullet.id, text, SOURCE_CACHE)
            else:
                pending_bullets.append((bullet, key))

        logger.info(
            f"Rewriting {len(bullets)} bullets: {len(bullets) - len(pending_bullets)} cached, "
            f"{len(pending_bullets)} need the provider"
        )

        if pending_bullets:
            context = build_context(job_spec, required_keywords(job_spec))
            breaker = CircuitBreaker(self.breaker_threshold)
            stop = threading.Event()
            executor = ThreadPoolExecutor(
                max_workers=min(len(pending_bullets), self.gate.capacity),
                thread_name_prefix="rewrite",
            )
            futures: dict[Future, Bullet] = {
                executor.submit(
                    self._rewrite_one, bullet, key, context, target_language, breaker, stop
                ): bullet
                for bullet, key in pending_bullets
            }

            pending = set(futures)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    batch.warnings.append("Rewrite batch cancelled by caller")
                    break
                if deadline is not None and time.monotonic() - started >= deadline:
                    batch.warnings.append(f"Rewrite batch exceeded its {deadline:.1f}s deadline")
                    break
                done, pending = wait(pending, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    outcome = future.result()
                    outcomes[outcome.bullet_id] = outcome

            if pending:
                stop.set()
                batch.cancelled = True
                for future in pending:
                    future.cancel()
                    bullet = futures[future]
                    outcomes[bullet.id] = self._fallback(bullet, "cancelled before completion")
                # In-flight calls are abandoned and their outcomes left out of the batch
                executor.shutdown(wait=False, cancel_futures=True)
            else:
                executor.shutdown(wait=True)

            batch.breaker_open = breaker.is_open

        for bullet in bullets:
            outcome = outcomes[bullet.id]
            batch.outcomes[bullet.id] = outcome
            batch.texts[bullet.id] = outcome.text
            batch.usage = batch.usage + outcome.usage
            if outcome.permanent:
                batch.warnings.append(f"Rewrite of bullet {bullet.id} failed permanently: {outcome.error}")

        if batch.breaker_open:
            batch.warnings.append(
                f"Provider circuit opened after {self.breaker_threshold} consecutive failures; "
                f"remaining bullets kept their original text"
            )

        degraded = batch.degraded_ids
        if degraded:
            logger.warning(f"{len(degraded)} of {len(bullets)} bullets fell back to original text")
        logger.info(
            f"Rewrite finished in {time.monotonic() - started:.2f}s "
            f"({batch.usage.total_tokens} tokens)"
        )
        return batch

    def _fallback(
        self,
        bullet: Bullet,
        error: str,
        attempts: int = 0,
        permanent: bool = False,
    ) -> RewriteOutcome:
        return RewriteOutcome(
            bullet_id=bullet.id,
            text=bullet.content,
            source=SOURCE_FALLBACK,
            degraded=True,
            attempts=attempts,
            error=error,
            permanent=permanent,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        sleep = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Transient provider failure (attempt {retry_state.attempt_number}/"
            f"{self.retry_policy.max_attempts}), retrying in {sleep:.2f}s: {error}"
        )

    def _rewrite_one(
        self,
        bullet: Bullet,
        key: str,
        context: str,
        target_language: str,
        breaker: CircuitBreaker,
        stop: threading.Event,
    ) -> RewriteOutcome:
        """Worker body: one bullet, retried per policy."""
        if stop.is_set():
            return self._fallback(bullet, "cancelled before start")
        if breaker.is_open:
            return self._fallback(bullet, "provider circuit open")

        prompt = build_rewrite_prompt(bullet, target_language)
        policy = self.retry_policy
        attempts = 0

        def attempt():
            nonlocal attempts
            if stop.is_set():
                raise _Cancelled()
            if breaker.is_open:
                raise _CircuitOpen()
            attempts += 1
            with self.gate.slot(stop):
                generation = self.provider.generate(prompt, context)
            text = clean_bullet(generation.text)
            if not text:
                raise ProviderTransientError("Provider returned a blank rewrite")
            return text, generation.usage

        retrying = Retrying(
            stop=stop_after_attempt(policy.max_attempts) | stop_when_event_set(stop),
            wait=policy.wait(),
            retry=retry_if_exception_type(ProviderTransientError),
            sleep=stop.wait,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            text, usage = retrying(attempt)
        except _Cancelled:
            return self._fallback(bullet, "cancelled", attempts)
        except _CircuitOpen:
            return self._fallback(bullet, "provider circuit open", attempts)
        except ProviderPermanentError as e:
            logger.error(f"Permanent provider failure for bullet {bullet.id}: {e}")
            if breaker.record_failure():
                logger.error("Provider circuit opened")
            return self._fallback(bullet, str(e), attempts, permanent=True)
        except ProviderError as e:
            logger.error(f"Rewrite of bullet {bullet.id} failed after {attempts} attempts: {e}")
            if breaker.record_failure():
                logger.error("Provider circuit opened")
            return self._fallback(bullet, str(e), attempts)
        except Exception as e:
            # Adapters must raise ProviderError; anything else is treated as permanent
            logger.exception(f"Provider raised an unexpected error for bullet {bullet.id}")
            if breaker.record_failure():
                logger.error("Provider circuit opened")
            return self._fallback(bullet, f"unexpected provider error: {e}", attempts, permanent=True)

        breaker.record_success()
        # Workers abandoned after a deadline or cancel still reach this point.
        # Their outcome is dropped from the batch but the rewrite is cached.
        self.cache.put(key, text, usage)
        logger.debug(f"Rewrote bullet {bullet.id} in {attempts} attempt(s)")
        return RewriteOutcome(
            bullet_id=bullet.id,
            text=text,
            source=SOURCE_PROVIDER,
            attempts=attempts,
            usage=usage,
        )
