# Matcher module - scores bullets and skills against a job description
from .relevance import RelevanceScorer, ScorerWeights
from .skills import (
    SkillMatch,
    extract_keywords,
    keyword_coverage,
    match_skills,
    required_keywords,
    skill_coverage,
)

__all__ = [
    "RelevanceScorer",
    "ScorerWeights",
    "SkillMatch",
    "extract_keywords",
    "keyword_coverage",
    "match_skills",
    "required_keywords",
    "skill_coverage",
]
