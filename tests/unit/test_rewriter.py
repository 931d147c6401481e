"""Unit tests for the rewrite orchestrator."""

import threading
import time
import warnings
from types import SimpleNamespace

import pytest

from generator.cache import make_cache_key
from generator.rewriter import (
    SOURCE_CACHE,
    SOURCE_FALLBACK,
    SOURCE_PROVIDER,
    CircuitBreaker,
    ProviderGate,
    RetryPolicy,
    RewriteOrchestrator,
)
from shared.exceptions import ProviderPermanentError, ProviderTransientError, ValidationError
from shared.models import JobSpec
from shared.ports import Generation

from conftest import BlockingProvider, FakeProvider, bullet_from_prompt, make_bullet

JOB = JobSpec(description="Python engineer for data pipelines", title="Data Engineer")


@pytest.fixture
def bullets():
    return [
        make_bullet("alpha", "Alpha built the ingestion service"),
        make_bullet("beta", "Beta migrated the warehouse"),
        make_bullet("gamma", "Gamma cut cloud costs by 20%"),
    ]


@pytest.mark.unit
def test_rewrites_every_bullet(make_orchestrator, bullets, cache):
    """Test the happy path: provider output is cleaned and cached."""
    provider = FakeProvider({"Alpha": ['"- **Designed** the ingestion service"']})
    orchestrator = make_orchestrator(provider)

    batch = orchestrator.rewrite_all(bullets, JOB)

    assert batch.texts["alpha"] == "Designed the ingestion service"
    assert batch.texts["beta"] == "Tailored Beta migrated the warehouse"
    assert all(o.source == SOURCE_PROVIDER for o in batch.outcomes.values())
    assert batch.degraded_ids == []
    assert batch.warnings == []
    assert batch.usage.total_tokens == 45
    assert len(cache) == 3


@pytest.mark.unit
def test_output_keyed_in_bullet_order(make_orchestrator, bullets):
    batch = make_orchestrator(FakeProvider()).rewrite_all(bullets, JOB)

    assert list(batch.texts) == ["alpha", "beta", "gamma"]


@pytest.mark.unit
def test_cache_hit_skips_provider(make_orchestrator, bullets, cache):
    """Test that cached rewrites are served without a provider call."""
    cache.put(make_cache_key(bullets[0].content, JOB.description, "en"), "Cached alpha")
    provider = FakeProvider()

    batch = make_orchestrator(provider).rewrite_all(bullets, JOB)

    assert batch.texts["alpha"] == "Cached alpha"
    assert batch.outcomes["alpha"].source == SOURCE_CACHE
    assert provider.calls_for("Alpha") == 0
    assert len(provider.calls) == 2


@pytest.mark.unit
def test_cache_is_keyed_by_language(make_orchestrator, bullets, cache):
    cache.put(make_cache_key(bullets[0].content, JOB.description, "en"), "Cached alpha")
    provider = FakeProvider()

    batch = make_orchestrator(provider).rewrite_all(bullets[:1], JOB, target_language="es")

    assert batch.outcomes["alpha"].source == SOURCE_PROVIDER
    assert "Spanish" in provider.calls[0]


@pytest.mark.unit
def test_transient_failures_then_success(make_orchestrator, bullets):
    """Test two transient failures followed by a success within three attempts."""
    provider = FakeProvider(
        {
            "Alpha": [
                ProviderTransientError("rate limited"),
                ProviderTransientError("timeout"),
                "Recovered alpha",
            ]
        }
    )

    batch = make_orchestrator(provider).rewrite_all(bullets, JOB)

    outcome = batch.outcomes["alpha"]
    assert outcome.text == "Recovered alpha"
    assert outcome.attempts == 3
    assert not outcome.degraded
    assert provider.calls_for("Alpha") == 3


@pytest.mark.unit
def test_transient_failures_exhaust_attempts(make_orchestrator, bullets, cache):
    """Test that a bullet failing every attempt keeps its original text."""
    provider = FakeProvider({"Alpha": [ProviderTransientError("busy")]})

    batch = make_orchestrator(provider).rewrite_all(bullets, JOB)

    outcome = batch.outcomes["alpha"]
    assert provider.calls_for("Alpha") == 3
    assert outcome.attempts == 3
    assert outcome.degraded
    assert outcome.source == SOURCE_FALLBACK
    assert batch.texts["alpha"] == bullets[0].content
    assert "busy" in batch.errors["alpha"]
    assert make_cache_key(bullets[0].content, JOB.description, "en") not in cache
    assert not batch.outcomes["beta"].degraded


@pytest.mark.unit
def test_blank_output_is_retried(make_orchestrator, bullets):
    provider = FakeProvider({"Alpha": ['  ""  ', "Second try"]})

    batch = make_orchestrator(provider).rewrite_all(bullets[:1], JOB)

    assert batch.texts["alpha"] == "Second try"
    assert batch.outcomes["alpha"].attempts == 2


@pytest.mark.unit
def test_permanent_failure_is_not_retried(make_orchestrator, bullets):
    """Test an authentication failure on one bullet while the rest continue."""
    provider = FakeProvider({"Beta": [ProviderPermanentError("invalid api key")]})

    batch = make_orchestrator(provider).rewrite_all(bullets, JOB)

    assert provider.calls_for("Beta") == 1
    assert batch.texts["beta"] == bullets[1].content
    assert batch.outcomes["beta"].permanent
    assert batch.degraded_ids == ["beta"]
    assert len(batch.warnings) == 1
    assert "beta" in batch.warnings[0]
    assert batch.texts["alpha"].startswith("Tailored")
    assert batch.texts["gamma"].startswith("Tailored")
    assert not batch.breaker_open


@pytest.mark.unit
def test_unexpected_exception_is_permanent(make_orchestrator, bullets):
    provider = FakeProvider({"Gamma": [RuntimeError("boom")]})

    batch = make_orchestrator(provider).rewrite_all(bullets, JOB)

    assert provider.calls_for("Gamma") == 1
    assert batch.outcomes["gamma"].permanent
    assert batch.outcomes["gamma"].degraded


@pytest.mark.unit
def test_circuit_breaker_stops_provider_calls(make_orchestrator):
    """Test that consecutive failures open the breaker and skip the rest."""
    bullets = [make_bullet(f"b{i}", f"Bullet number {i}") for i in range(5)]
    provider = FakeProvider({"Bullet number": [ProviderPermanentError("unauthorized")]})

    batch = make_orchestrator(provider, breaker_threshold=2, max_in_flight=1).rewrite_all(
        bullets, JOB
    )

    assert len(provider.calls) == 2
    assert batch.breaker_open
    assert len(batch.degraded_ids) == 5
    assert all(batch.texts[b.id] == b.content for b in bullets)
    assert any("circuit" in w for w in batch.warnings)
    assert batch.outcomes["b4"].error == "provider circuit open"


@pytest.mark.unit
def test_cancel_event_degrades_unfinished_bullets(make_orchestrator, bullets):
    """Test caller cancellation before any result is collected."""
    cancel = threading.Event()
    cancel.set()

    batch = make_orchestrator(FakeProvider()).rewrite_all(bullets, JOB, cancel_event=cancel)

    assert batch.cancelled
    assert sorted(batch.degraded_ids) == ["alpha", "beta", "gamma"]
    assert all(batch.texts[b.id] == b.content for b in bullets)
    assert any("cancelled" in w for w in batch.warnings)


@pytest.mark.unit
def test_deadline_abandons_slow_calls(make_orchestrator, bullets):
    """Test that a hung provider cannot hold the batch past its deadline."""
    provider = BlockingProvider()
    try:
        started = time.monotonic()
        batch = make_orchestrator(provider).rewrite_all(bullets, JOB, deadline=0.2)
        elapsed = time.monotonic() - started
    finally:
        provider.release.set()

    assert elapsed < 2.0
    assert batch.cancelled
    assert batch.degraded_ids == ["alpha", "beta", "gamma"]
    assert any("deadline" in w for w in batch.warnings)


@pytest.mark.unit
def test_gate_bounds_calls_in_flight(make_orchestrator):
    """Test that no more than max_in_flight provider calls overlap."""
    lock = threading.Lock()
    state = {"current": 0, "peak": 0}

    class CountingProvider:
        def generate(self, prompt, context):
            with lock:
                state["current"] += 1
                state["peak"] = max(state["peak"], state["current"])
            time.sleep(0.02)
            with lock:
                state["current"] -= 1
            return Generation(text=f"Done {bullet_from_prompt(prompt)}")

    bullets = [make_bullet(f"b{i}", f"Bullet number {i}") for i in range(8)]
    batch = make_orchestrator(CountingProvider(), max_in_flight=2).rewrite_all(bullets, JOB)

    assert state["peak"] <= 2
    assert batch.degraded_ids == []


@pytest.mark.unit
def test_gate_is_shared_between_orchestrators(cache, fast_policy):
    gate = ProviderGate(3)
    first = RewriteOrchestrator(FakeProvider(), cache, gate=gate, retry_policy=fast_policy)
    second = RewriteOrchestrator(FakeProvider(), cache, gate=gate, retry_policy=fast_policy)

    assert first.gate is second.gate


@pytest.mark.unit
def test_circuit_breaker_resets_on_success():
    breaker = CircuitBreaker(threshold=2)

    assert breaker.record_failure() is False
    breaker.record_success()
    assert breaker.record_failure() is False
    assert breaker.record_failure() is True
    assert breaker.is_open
    assert breaker.record_failure() is False


@pytest.mark.unit
def test_invalid_policy_values():
    with pytest.raises(ValidationError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValidationError):
        RetryPolicy(base_delay=-1)
    with pytest.raises(ValidationError):
        ProviderGate(0)
    with pytest.raises(ValidationError):
        CircuitBreaker(0)


@pytest.mark.unit
def test_backoff_grows_exponentially_with_bounded_jitter():
    """Test delays of base * 2^(n-1), capped at max_delay, plus at most base of jitter."""
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        strategy = RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=8.0).wait()

        for attempt in range(1, 7):
            delay = strategy(SimpleNamespace(attempt_number=attempt))
            expected = min(0.5 * 2 ** (attempt - 1), 8.0)
            assert expected <= delay <= expected + 0.5


@pytest.mark.unit
def test_zero_delay_policy_does_not_sleep(fast_policy):
    assert fast_policy.wait()(SimpleNamespace(attempt_number=4)) == 0


@pytest.mark.unit
def test_abandoned_call_still_fills_cache(make_orchestrator, bullets, cache):
    """Test that a rewrite finishing after the deadline is cached for the next run."""
    provider = BlockingProvider()
    try:
        batch = make_orchestrator(provider).rewrite_all(bullets[:1], JOB, deadline=0.1)
    finally:
        provider.release.set()

    assert batch.degraded_ids == ["alpha"]
    key = make_cache_key(bullets[0].content, JOB.description, "en")
    for _ in range(100):
        if key in cache:
            break
        time.sleep(0.02)
    assert key in cache

    rerun = make_orchestrator(FakeProvider()).rewrite_all(bullets[:1], JOB)
    assert rerun.outcomes["alpha"].source == SOURCE_CACHE
    assert rerun.texts["alpha"] == "Late Alpha built the ingestion service"
