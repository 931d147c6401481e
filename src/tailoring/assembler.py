"""
Resume assembly.
Combines profile data, the selected (and possibly rewritten) bullets, matched
skills and the match score into a Resume. No persistence.
"""

import uuid
from typing import Iterable, Optional

from loguru import logger

from matcher.skills import covered_keywords, match_skills, required_keywords
from matcher.text import phrase_in, tokenize
from shared.exceptions import ValidationError
from shared.models import (
    Experience,
    JobSpec,
    Profile,
    Resume,
    ResumeAnalysis,
    ResumeContent,
    ResumeStatus,
    ScoredBullet,
    Skill,
    TailoredBullet,
    TailoredExperience,
)
from tailoring.scoring import ScoreCalculator


class ResumeAssembler:
    """Builds the structured resume document for a tailoring run."""

    def __init__(self, calculator: Optional[ScoreCalculator] = None):
        self.calculator = calculator or ScoreCalculator()

    def assemble(
        self,
        profile: Profile,
        experiences: list[Experience],
        selection: list[str],
        rewrites: dict[str, str],
        skills: list[Skill],
        job_spec: JobSpec,
        scores: dict[str, ScoredBullet],
        target_language: str = "en",
        degraded: Iterable[str] = (),
        resume_id: Optional[str] = None,
    ) -> Resume:
        """
        Assemble a generated resume.

        Args:
            profile: Owner profile (contact block, summary)
            experiences: Experiences in the order used for selection
            selection: Selected bullet IDs, in order
            rewrites: Bullet ID -> text to print; missing IDs use the original
            skills: The user's skills
            job_spec: Target job
            scores: Relevance of every bullet, keyed by bullet ID
            degraded: IDs whose rewrite fell back to the original text
            resume_id: Keep an existing ID when regenerating

        Returns:
            Resume with status "generated"
        """
        owners = {exp.id: exp.user_id for exp in experiences}
        by_id = {b.id: b for exp in experiences for b in exp.bullets}

        for bullet_id in selection:
            bullet = by_id.get(bullet_id)
            if bullet is None:
                raise ValidationError(f"unknown bullet {bullet_id}", field="selected_bullets")
            if owners.get(bullet.experience_id) != profile.user_id:
                raise ValidationError(
                    f"bullet {bullet_id} does not belong to user {profile.user_id}",
                    field="selected_bullets",
                )

        degraded_ids = set(degraded)
        selected_set = set(selection)
        order = {bid: index for index, bid in enumerate(selection)}

        sections = []
        for exp in experiences:
            chosen = sorted(
                (b for b in exp.bullets if b.id in selected_set), key=lambda b: order[b.id]
            )
            if not chosen:
                continue
            sections.append(
                TailoredExperience(
                    experience_id=exp.id,
                    type=exp.type,
                    title=exp.title,
                    organization=exp.organization,
                    start_date=exp.start_date,
                    end_date=exp.end_date,
                    is_current=exp.is_current,
                    bullets=[
                        TailoredBullet(
                            bullet_id=b.id,
                            original_content=b.content,
                            tailored_content=rewrites.get(b.id, b.content),
                            degraded=b.id in degraded_ids,
                        )
                        for b in chosen
                    ],
                )
            )

        skill_matches = match_skills(skills, job_spec)
        selected_scores = [scores[bid] for bid in selection if bid in scores]
        score = self.calculator.compute_score(selected_scores, skill_matches, job_spec)

        required = required_keywords(job_spec)
        from_bullets = set(covered_keywords(selected_scores, required))
        skill_tokens = frozenset(t for m in skill_matches for t in tokenize(m.name))
        matched = [kw for kw in required if kw in from_bullets or phrase_in(kw, skill_tokens)]
        missing = [kw for kw in required if kw not in matched]

        content = ResumeContent(
            contact=profile.contact,
            summary=profile.summary,
            experiences=sections,
            skills=[m.name for m in skill_matches],
            analysis=ResumeAnalysis(matched_keywords=matched, missing_keywords=missing),
        )

        resume = Resume(
            id=resume_id or uuid.uuid4().hex,
            user_id=profile.user_id,
            job_description=job_spec.description,
            job_title=job_spec.title,
            company_name=job_spec.company,
            required_skills=list(job_spec.required_skills),
            target_language=target_language,
            selected_bullets=list(selection),
            generated_content=content,
            score=score,
            status=ResumeStatus.GENERATED,
        )

        logger.info(
            f"Assembled resume {resume.id} for {job_spec.display_name}: "
            f"{len(selection)} bullets in {len(sections)} sections, score {score}"
        )
        return resume
