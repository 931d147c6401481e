# Generator module - AI rewriting of selected bullets
# Cache, provider adapters, prompts and the concurrent rewrite orchestrator

from generator.cache import RewriteCache, make_cache_key
from generator.providers import OpenAIProvider, classify_openai_error
from generator.rewriter import (
    CircuitBreaker,
    ProviderGate,
    RetryPolicy,
    RewriteBatch,
    RewriteOrchestrator,
    RewriteOutcome,
    get_provider_gate,
)

__all__ = [
    "RewriteCache",
    "make_cache_key",
    "OpenAIProvider",
    "classify_openai_error",
    "CircuitBreaker",
    "ProviderGate",
    "RetryPolicy",
    "RewriteBatch",
    "RewriteOrchestrator",
    "RewriteOutcome",
    "get_provider_gate",
]
