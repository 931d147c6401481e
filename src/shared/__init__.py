# Shared module for common configuration, models, errors and collaborator contracts
from .config import Settings, get_settings
from .exceptions import (
    ProviderError,
    ProviderPermanentError,
    ProviderTransientError,
    SelectionError,
    TailoringError,
    ValidationError,
)
from .models import (
    Bullet,
    Experience,
    ExperienceType,
    JobSpec,
    Profile,
    Resume,
    ResumeStatus,
    ScoredBullet,
    Skill,
    TokenUsage,
)

__all__ = [
    "Settings",
    "get_settings",
    "TailoringError",
    "ValidationError",
    "SelectionError",
    "ProviderError",
    "ProviderTransientError",
    "ProviderPermanentError",
    "Bullet",
    "Experience",
    "ExperienceType",
    "JobSpec",
    "Profile",
    "Resume",
    "ResumeStatus",
    "ScoredBullet",
    "Skill",
    "TokenUsage",
]
