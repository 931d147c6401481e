"""
Relevance scoring of bullets against a job description.
Blends keyword overlap with the bullet's stored impact score.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from loguru import logger

from matcher.text import phrase_in, token_set, tokenize
from shared.exceptions import ValidationError
from shared.models import Bullet, Experience, JobSpec, ScoredBullet


@dataclass(frozen=True)
class ScorerWeights:
    """Blend between keyword overlap and impact score."""

    keyword: float = 0.7
    impact: float = 0.3

    def __post_init__(self):
        if self.keyword < 0 or self.impact < 0:
            raise ValidationError("scorer weights must be non-negative", field="scorer_weights")
        if self.keyword + self.impact <= 0:
            raise ValidationError("scorer weights must sum to a positive value", field="scorer_weights")

    @property
    def normalized(self) -> tuple[float, float]:
        total = self.keyword + self.impact
        return self.keyword / total, self.impact / total


class RelevanceScorer:
    """Scores bullets against a job description. Pure and deterministic."""

    def __init__(self, weights: Optional[ScorerWeights] = None):
        self.weights = weights or ScorerWeights()

    @staticmethod
    def impact_term(bullet: Bullet) -> float:
        """Monotonic transform of the 0-100 impact score onto [0, 1]."""
        return bullet.impact_score / 100.0

    @staticmethod
    def keyword_term(bullet: Bullet, jd_tokens: frozenset[str]) -> float:
        """Share of job description tokens covered by the bullet's keywords."""
        if not jd_tokens or not bullet.keywords:
            return 0.0
        bullet_tokens = {t for kw in bullet.keywords for t in tokenize(kw)}
        overlap = len(bullet_tokens & jd_tokens)
        return min(overlap / len(jd_tokens), 1.0)

    def _score(self, bullet: Bullet, jd_tokens: frozenset[str]) -> float:
        impact = self.impact_term(bullet)
        if not jd_tokens:
            return impact

        keyword_weight, impact_weight = self.weights.normalized
        value = keyword_weight * self.keyword_term(bullet, jd_tokens) + impact_weight * impact
        return max(0.0, min(value, 1.0))

    def score(self, bullet: Bullet, job_spec: JobSpec) -> float:
        """Relevance of one bullet in [0, 1]."""
        return self._score(bullet, token_set(job_spec.description))

    def score_bullet(
        self, bullet: Bullet, job_spec: JobSpec, jd_tokens: Optional[frozenset[str]] = None
    ) -> ScoredBullet:
        if jd_tokens is None:
            jd_tokens = token_set(job_spec.description)
        matched = frozenset(kw for kw in bullet.keywords if phrase_in(kw, jd_tokens))
        return ScoredBullet(
            bullet=bullet,
            relevance=self._score(bullet, jd_tokens),
            matched_keywords=matched,
        )

    def score_all(
        self, experiences: Iterable[Experience], job_spec: JobSpec
    ) -> dict[str, ScoredBullet]:
        """Score every bullet of every experience, keyed by bullet ID."""
        jd_tokens = token_set(job_spec.description)
        scores = {}
        for exp in experiences:
            for bullet in exp.bullets:
                scores[bullet.id] = self.score_bullet(bullet, job_spec, jd_tokens)

        logger.debug(
            f"Scored {len(scores)} bullets against {len(jd_tokens)} job description tokens"
        )
        return scores
