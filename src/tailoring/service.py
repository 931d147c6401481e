"""
Tailoring pipeline: score → select → rewrite → assemble.
"""

import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from generator.rewriter import RewriteOrchestrator
from matcher.relevance import RelevanceScorer, ScorerWeights
from shared.config import Settings, get_settings
from shared.exceptions import ValidationError
from shared.models import JobSpec, Resume, TokenUsage
from shared.ports import ProfileRepository
from tailoring.assembler import ResumeAssembler
from tailoring.scoring import ScoreCalculator, ScoreWeights
from tailoring.selector import BulletSelector, SelectionBudget

_LANGUAGE_CODE = re.compile(r"^[a-z]{2}(-[a-z]{2})?$")


def normalize_language(code: str) -> str:
    normalized = (code or "").strip().lower()
    if not _LANGUAGE_CODE.match(normalized):
        raise ValidationError(f"invalid language code: {code!r}", field="target_language")
    return normalized


@dataclass
class TailoringResult:
    """Result of one tailoring run."""

    resume: Resume
    warnings: list[str] = field(default_factory=list)
    degraded_ids: list[str] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    selection_reasons: dict[str, str] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_ids)


class TailoringService:
    """Produces a tailored Resume for a user and a job description."""

    def __init__(
        self,
        repository: ProfileRepository,
        orchestrator: Optional[RewriteOrchestrator] = None,
        scorer: Optional[RelevanceScorer] = None,
        selector: Optional[BulletSelector] = None,
        calculator: Optional[ScoreCalculator] = None,
        rewrite_deadline: Optional[float] = None,
    ):
        self.repository = repository
        self.orchestrator = orchestrator
        self.scorer = scorer or RelevanceScorer()
        self.selector = selector or BulletSelector()
        self.calculator = calculator or ScoreCalculator(scorer=self.scorer)
        self.assembler = ResumeAssembler(self.calculator)
        self.rewrite_deadline = rewrite_deadline

    @classmethod
    def from_settings(
        cls,
        repository: ProfileRepository,
        orchestrator: Optional[RewriteOrchestrator] = None,
        settings: Optional[Settings] = None,
    ) -> "TailoringService":
        settings = settings or get_settings()
        scorer = RelevanceScorer(
            ScorerWeights(
                keyword=settings.scorer_keyword_weight,
                impact=settings.scorer_impact_weight,
            )
        )
        budget = SelectionBudget(
            max_bullets_per_experience=settings.selector_max_bullets_per_experience,
            max_chars_per_experience=settings.selector_max_chars_per_experience,
            max_total_chars=settings.selector_max_total_chars,
        )
        return cls(
            repository=repository,
            orchestrator=orchestrator,
            scorer=scorer,
            selector=BulletSelector(budget),
            calculator=ScoreCalculator(ScoreWeights.from_settings(settings), scorer),
            rewrite_deadline=settings.rewrite_deadline_seconds,
        )

    def tailor(
        self,
        user_id: str,
        job_spec: JobSpec,
        target_language: str = "en",
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        resume_id: Optional[str] = None,
    ) -> TailoringResult:
        """
        Tailor a resume.

        Raises:
            ValidationError: empty corpus, bad language code or configuration
            SelectionError: no bullet fits the budget
        """
        language = normalize_language(target_language)

        experiences = self.repository.list_experiences(user_id)
        if not any(exp.bullets for exp in experiences):
            raise ValidationError("no bullets available for resume generation", field="experiences")
        skills = self.repository.list_skills(user_id)
        profile = self.repository.get_profile(user_id)

        logger.info(
            f"Tailoring resume for {user_id} -> {job_spec.display_name} "
            f"({sum(len(e.bullets) for e in experiences)} bullets, {len(skills)} skills)"
        )

        scores = self.scorer.score_all(experiences, job_spec)
        selection = self.selector.plan(experiences, scores)

        by_id = {b.id: b for exp in experiences for b in exp.bullets}
        selected = [by_id[bid] for bid in selection.bullet_ids]

        warnings: list[str] = []
        degraded: list[str] = []
        usage = TokenUsage()
        rewrites = {b.id: b.content for b in selected}

        if self.orchestrator is not None:
            batch = self.orchestrator.rewrite_all(
                selected,
                job_spec,
                language,
                deadline=deadline if deadline is not None else self.rewrite_deadline,
                cancel_event=cancel_event,
            )
            rewrites = batch.texts
            warnings = list(batch.warnings)
            degraded = batch.degraded_ids
            usage = batch.usage
        else:
            logger.debug("No rewrite orchestrator configured, keeping original bullet text")

        resume = self.assembler.assemble(
            profile=profile,
            experiences=experiences,
            selection=selection.bullet_ids,
            rewrites=rewrites,
            skills=skills,
            job_spec=job_spec,
            scores=scores,
            target_language=language,
            degraded=degraded,
            resume_id=resume_id,
        )

        for warning in warnings:
            logger.warning(warning)

        return TailoringResult(
            resume=resume,
            warnings=warnings,
            degraded_ids=degraded,
            usage=usage,
            selection_reasons=selection.reasons,
        )

    def rescore(self, resume: Resume, job_spec: Optional[JobSpec] = None) -> int:
        """Recompute and store the match score of an existing resume."""
        experiences = self.repository.list_experiences(resume.user_id)
        skills = self.repository.list_skills(resume.user_id)
        score = self.calculator.recompute(resume, experiences, skills, job_spec)
        if score != resume.score:
            logger.info(f"Resume {resume.id} score changed {resume.score} -> {score}")
        resume.score = score
        resume.updated_at = datetime.now(timezone.utc)
        return score
