"""
Match score calculation.
Pure function of stored data, so a saved resume can be re-scored after edits
without calling the rewrite provider.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from loguru import logger

from matcher.relevance import RelevanceScorer
from matcher.skills import SkillMatch, keyword_coverage, match_skills, required_keywords, skill_coverage
from shared.config import Settings
from shared.exceptions import ValidationError
from shared.models import Experience, JobSpec, Resume, ScoredBullet, Skill


@dataclass(frozen=True)
class ScoreWeights:
    """Weights of the match score components."""

    relevance: float = 0.60
    skills: float = 0.25
    keywords: float = 0.15

    def __post_init__(self):
        if min(self.relevance, self.skills, self.keywords) < 0:
            raise ValidationError("score weights must be non-negative", field="score_weights")
        if self.relevance + self.skills + self.keywords <= 0:
            raise ValidationError("score weights must sum to a positive value", field="score_weights")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoreWeights":
        return cls(
            relevance=settings.score_relevance_weight,
            skills=settings.score_skill_weight,
            keywords=settings.score_keyword_weight,
        )


@dataclass
class ScoreBreakdown:
    """Components of a match score, for display."""

    mean_relevance: float
    skill_coverage: float
    keyword_coverage: float
    score: int


class ScoreCalculator:
    """Derives the 0-100 match score from scorer and matcher signals."""

    def __init__(
        self,
        weights: Optional[ScoreWeights] = None,
        scorer: Optional[RelevanceScorer] = None,
    ):
        self.weights = weights or ScoreWeights()
        self.scorer = scorer or RelevanceScorer()

    def breakdown(
        self,
        selected: list[ScoredBullet],
        skill_matches: Iterable[SkillMatch],
        job_spec: JobSpec,
    ) -> ScoreBreakdown:
        required = required_keywords(job_spec)
        mean_relevance = (
            sum(sb.relevance for sb in selected) / len(selected) if selected else 0.0
        )
        skills = skill_coverage(skill_matches, required)
        keywords = keyword_coverage(selected, required)

        w = self.weights
        total_weight = w.relevance + w.skills + w.keywords
        raw = 100.0 * (
            w.relevance * mean_relevance + w.skills * skills + w.keywords * keywords
        ) / total_weight

        # Round half up; built-in round() would bank to even
        score = max(0, min(100, int(math.floor(raw + 0.5))))
        return ScoreBreakdown(
            mean_relevance=mean_relevance,
            skill_coverage=skills,
            keyword_coverage=keywords,
            score=score,
        )

    def compute_score(
        self,
        selected: list[ScoredBullet],
        skill_matches: Iterable[SkillMatch],
        job_spec: JobSpec,
    ) -> int:
        return self.breakdown(selected, skill_matches, job_spec).score

    def recompute(
        self,
        resume: Resume,
        experiences: list[Experience],
        skills: list[Skill],
        job_spec: Optional[JobSpec] = None,
    ) -> int:
        """Score a stored resume from its selected bullet IDs."""
        job_spec = job_spec or JobSpec(
            description=resume.job_description,
            title=resume.job_title,
            company=resume.company_name,
            required_skills=resume.required_skills,
        )
        bullets = {b.id: b for exp in experiences for b in exp.bullets}
        missing = [bid for bid in resume.selected_bullets if bid not in bullets]
        if missing:
            raise ValidationError(
                f"selected bullets not found in corpus: {', '.join(missing)}",
                field="selected_bullets",
            )

        selected = [self.scorer.score_bullet(bullets[bid], job_spec) for bid in resume.selected_bullets]
        score = self.compute_score(selected, match_skills(skills, job_spec), job_spec)
        logger.debug(f"Recomputed score for resume {resume.id}: {score}")
        return score
