"""
Keyword and skill matching between a job description and a user's corpus.
"""

from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from matcher.text import normalize_whitespace, phrase_in, token_set, tokenize, top_terms
from shared.models import JobSpec, ScoredBullet, Skill

DEFAULT_KEYWORD_LIMIT = 20


@dataclass
class SkillMatch:
    """A user skill that overlaps the job description."""

    skill: Skill
    matched_terms: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.skill.name


def extract_keywords(text: str, limit: int = DEFAULT_KEYWORD_LIMIT) -> list[str]:
    """Most frequent significant terms of a job description."""
    return top_terms(text, limit)


def required_keywords(job_spec: JobSpec, limit: int = DEFAULT_KEYWORD_LIMIT) -> list[str]:
    """Keywords the resume should cover.

    Uses the parsed required skills when the caller supplied them, otherwise
    falls back to the most frequent terms of the description.
    """
    if job_spec.required_skills:
        seen = set()
        keywords = []
        for skill in job_spec.required_skills:
            normalized = normalize_whitespace(skill).lower()
            if normalized and normalized not in seen:
                seen.add(normalized)
                keywords.append(normalized)
        return keywords
    return extract_keywords(job_spec.description, limit)


def match_skills(skills: Iterable[Skill], job_spec: JobSpec) -> list[SkillMatch]:
    """Skills whose name or category overlaps the job description.

    Ranked by proficiency (highest first), then highlighted skills first,
    then the user's own display order.
    """
    jd_tokens = token_set(job_spec.description) | {
        t for kw in job_spec.required_skills for t in tokenize(kw)
    }
    if not jd_tokens:
        return []

    matches = []
    for skill in skills:
        terms = [t for t in tokenize(skill.name) if t in jd_tokens]
        if skill.category:
            terms += [t for t in tokenize(skill.category) if t in jd_tokens and t not in terms]
        if terms:
            matches.append(SkillMatch(skill=skill, matched_terms=terms))

    matches.sort(
        key=lambda m: (-m.skill.proficiency, not m.skill.is_highlighted, m.skill.display_order)
    )
    logger.debug(f"Matched {len(matches)} skills: {[m.name for m in matches[:5]]}")
    return matches


def skill_coverage(matches: Iterable[SkillMatch], required: list[str]) -> float:
    """Fraction of required keywords covered by matched skill names."""
    if not required:
        return 0.0
    skill_tokens = frozenset(t for m in matches for t in tokenize(m.skill.name))
    covered = sum(1 for kw in required if phrase_in(kw, skill_tokens))
    return covered / len(required)


def covered_keywords(scored_bullets: Iterable[ScoredBullet], required: list[str]) -> list[str]:
    """Required keywords present in the selection's content or keywords."""
    tokens: set[str] = set()
    for sb in scored_bullets:
        tokens.update(tokenize(sb.bullet.content))
        for kw in sb.bullet.keywords:
            tokens.update(tokenize(kw))
    frozen = frozenset(tokens)
    return [kw for kw in required if phrase_in(kw, frozen)]


def keyword_coverage(scored_bullets: Iterable[ScoredBullet], required: list[str]) -> float:
    """Fraction of required keywords covered across the whole selection."""
    if not required:
        return 0.0
    return len(covered_keywords(scored_bullets, required)) / len(required)
