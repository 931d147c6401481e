"""Unit tests for the rewrite cache."""

import pytest

from generator.cache import RewriteCache, make_cache_key
from shared.models import TokenUsage


@pytest.mark.unit
def test_cache_key_is_stable_hex_digest():
    key = make_cache_key("Built APIs", "Python role", "en")

    assert key == make_cache_key("Built APIs", "Python role", "en")
    assert len(key) == 64
    int(key, 16)


@pytest.mark.unit
def test_cache_key_normalizes_whitespace_and_language_case():
    """Test that formatting noise does not change the key."""
    key = make_cache_key("Built  APIs\n", " Python\trole ", "EN")

    assert key == make_cache_key("Built APIs", "Python role", "en")


@pytest.mark.unit
@pytest.mark.parametrize(
    "bullet,job,language",
    [
        ("Built services", "Python role", "en"),
        ("Built APIs", "Go role", "en"),
        ("Built APIs", "Python role", "pt-br"),
    ],
)
def test_cache_key_changes_with_each_component(bullet, job, language):
    assert make_cache_key(bullet, job, language) != make_cache_key("Built APIs", "Python role", "en")


@pytest.mark.unit
def test_get_miss():
    assert RewriteCache().get("missing") == ("", False)


@pytest.mark.unit
def test_put_get_and_entry():
    """Test storing a rewrite with its token usage."""
    cache = RewriteCache()
    cache.put("k", "Rewritten", TokenUsage(1, 2, 3))

    assert cache.get("k") == ("Rewritten", True)
    assert "k" in cache
    assert len(cache) == 1
    entry = cache.entry("k")
    assert entry.usage.total_tokens == 3
    assert entry.created_at is not None


@pytest.mark.unit
def test_last_writer_wins():
    cache = RewriteCache()
    cache.put("k", "first")
    cache.put("k", "second")

    assert cache.get("k") == ("second", True)
    assert len(cache) == 1


@pytest.mark.unit
def test_evict_and_clear():
    cache = RewriteCache()
    cache.put("a", "1")
    cache.put("b", "2")

    assert cache.evict("a") is True
    assert cache.evict("a") is False
    assert cache.entry("a") is None

    cache.clear()
    assert len(cache) == 0


@pytest.mark.unit
def test_caches_are_independent():
    """Test that each cache instance has its own entries."""
    first, second = RewriteCache(), RewriteCache()
    first.put("k", "v")

    assert second.get("k") == ("", False)
