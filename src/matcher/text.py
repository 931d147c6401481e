"""
Text normalization and tokenization shared by the scorer and skill matcher.
"""

import re
from collections import Counter

# Keeps tech tokens like c++, c#, node.js and ci/cd together
_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9+#./-]*")
_WHITESPACE = re.compile(r"\s+")

STOP_WORDS = frozenset(
    """
    a about above after all also an and any are as at be been being both but by can
    could did do does doing during each etc few for from further had has have having
    he her here hers him his how i if in into is it its itself just may me more most
    must my no nor not of off on once only or other our ours out over own per same
    she should so some such than that the their theirs them then there these they
    this those through to too under until up us very was we were what when where
    which while who whom why will with within without would you your yours
    able ability across work working years year experience strong good great plus
    including team role looking join ideal candidate responsibilities requirements
    """.split()
)


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace and strip the ends."""
    return _WHITESPACE.sub(" ", text or "").strip()


def _clean_token(token: str) -> str:
    return token.rstrip(".-/")


def tokenize(text: str) -> list[str]:
    """Lowercase significant tokens in order of appearance (stop words removed)."""
    tokens = []
    for raw in _TOKEN_PATTERN.findall((text or "").lower()):
        token = _clean_token(raw)
        if len(token) < 2 and token not in ("c", "r"):
            continue
        if token in STOP_WORDS:
            continue
        tokens.append(token)
    return tokens


def token_set(text: str) -> frozenset[str]:
    return frozenset(tokenize(text))


def phrase_in(phrase: str, tokens: frozenset[str]) -> bool:
    """True when every token of a phrase occurs in the token set."""
    phrase_tokens = tokenize(phrase)
    return bool(phrase_tokens) and all(t in tokens for t in phrase_tokens)


def top_terms(text: str, limit: int) -> list[str]:
    """Most frequent tokens; ties keep first-occurrence order."""
    tokens = tokenize(text)
    counts = Counter(tokens)
    first_seen: dict[str, int] = {}
    for index, token in enumerate(tokens):
        first_seen.setdefault(token, index)
    ranked = sorted(counts, key=lambda t: (-counts[t], first_seen[t]))
    return ranked[:limit]
