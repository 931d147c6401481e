"""
Collaborator contracts the engine depends on.
Implementations live in adapters (see shared.profile, generator.providers).
"""

from dataclasses import dataclass, field
from typing import Protocol

from shared.models import Experience, Profile, Resume, Skill, TokenUsage


@dataclass
class Generation:
    """Text returned by a provider call."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class TextProvider(Protocol):
    """Text-generation capability.

    Implementations raise ProviderTransientError for failures worth retrying
    and ProviderPermanentError for everything else.
    """

    def generate(self, prompt: str, context: str) -> Generation:
        ...


class ProfileRepository(Protocol):
    """Read-only access to a user's corpus."""

    def get_profile(self, user_id: str) -> Profile:
        ...

    def list_experiences(self, user_id: str) -> list[Experience]:
        ...

    def list_skills(self, user_id: str) -> list[Skill]:
        ...


class ResumeRepository(Protocol):
    """Persists generated resumes."""

    def save(self, resume: Resume) -> None:
        ...
