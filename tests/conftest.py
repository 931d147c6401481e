"""Shared fixtures and test doubles."""

import threading
from datetime import date
from typing import Optional

import pytest

from generator.cache import RewriteCache
from generator.rewriter import ProviderGate, RetryPolicy, RewriteOrchestrator
from shared.models import (
    Bullet,
    ContactInfo,
    Experience,
    JobSpec,
    Profile,
    Skill,
    TokenUsage,
)
from shared.ports import Generation

USER_ID = "user-1"


def make_bullet(
    bullet_id: str,
    content: str,
    experience_id: str = "exp-1",
    impact: int = 50,
    keywords: tuple = (),
    order: int = 0,
) -> Bullet:
    return Bullet(
        id=bullet_id,
        experience_id=experience_id,
        content=content,
        impact_score=impact,
        keywords=keywords,
        display_order=order,
    )


def make_experience(
    exp_id: str,
    bullets: list[Bullet],
    user_id: str = USER_ID,
    title: str = "Engineer",
    organization: str = "Acme",
) -> Experience:
    return Experience(
        id=exp_id,
        user_id=user_id,
        title=title,
        organization=organization,
        start_date=date(2020, 1, 1),
        bullets=bullets,
    )


def bullet_from_prompt(prompt: str) -> str:
    """Original bullet text embedded in a rewrite prompt."""
    return prompt.splitlines()[1]


class FakeProvider:
    """
    Scripted TextProvider.

    `script` maps a marker found in the prompt to a list of results. Each call
    consumes the next result; the last one repeats. Exceptions are raised.
    Prompts without a marker get "Tailored <original text>".
    """

    def __init__(self, script: Optional[dict] = None):
        self.script = {marker: list(results) for marker, results in (script or {}).items()}
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def generate(self, prompt: str, context: str) -> Generation:
        with self._lock:
            self.calls.append(prompt)
            result = None
            for marker, results in self.script.items():
                if marker in prompt:
                    result = results.pop(0) if len(results) > 1 else results[0]
                    break

        if isinstance(result, Exception):
            raise result
        if result is None:
            result = f"Tailored {bullet_from_prompt(prompt)}"
        return Generation(text=result, usage=TokenUsage(10, 5, 15))

    def calls_for(self, marker: str) -> int:
        with self._lock:
            return sum(1 for prompt in self.calls if marker in prompt)


class BlockingProvider:
    """Provider whose calls wait until `release` is set."""

    def __init__(self):
        self.release = threading.Event()
        self.started = threading.Event()

    def generate(self, prompt: str, context: str) -> Generation:
        self.started.set()
        self.release.wait(timeout=5)
        return Generation(text=f"Late {bullet_from_prompt(prompt)}")


class InMemoryRepository:
    """ProfileRepository over fixed data for one user."""

    def __init__(self, profile: Profile, experiences: list[Experience], skills: list[Skill]):
        self.profile = profile
        self.experiences = experiences
        self.skills = skills

    def get_profile(self, user_id: str) -> Profile:
        return self.profile if user_id == self.profile.user_id else Profile(user_id=user_id)

    def list_experiences(self, user_id: str) -> list[Experience]:
        return self.experiences if user_id == self.profile.user_id else []

    def list_skills(self, user_id: str) -> list[Skill]:
        return self.skills if user_id == self.profile.user_id else []


@pytest.fixture
def job_spec() -> JobSpec:
    return JobSpec(
        description=(
            "We are hiring a backend engineer with Python and Kubernetes. "
            "You will build Python services on AWS and run PostgreSQL."
        ),
        title="Backend Engineer",
        company="Globex",
    )


@pytest.fixture
def experiences() -> list[Experience]:
    return [
        make_experience(
            "exp-1",
            [
                make_bullet(
                    "b1",
                    "Built Python services handling 5k requests per second",
                    impact=80,
                    keywords=("python", "services"),
                ),
                make_bullet(
                    "b2",
                    "Ran Kubernetes clusters on AWS for twelve teams",
                    impact=70,
                    keywords=("kubernetes", "aws"),
                    order=1,
                ),
                make_bullet("b3", "Organised the office book club", impact=10, order=2),
            ],
        ),
        make_experience(
            "exp-2",
            [
                make_bullet(
                    "b4",
                    "Tuned PostgreSQL queries to halve report times",
                    experience_id="exp-2",
                    impact=60,
                    keywords=("postgresql",),
                ),
            ],
            title="Developer",
            organization="Initech",
        ),
    ]


@pytest.fixture
def skills() -> list[Skill]:
    return [
        Skill(name="Python", category="Languages", proficiency=90, is_highlighted=True),
        Skill(name="Kubernetes", category="Infrastructure", proficiency=70, display_order=1),
        Skill(name="Haskell", category="Languages", proficiency=95, display_order=2),
    ]


@pytest.fixture
def profile() -> Profile:
    return Profile(
        user_id=USER_ID,
        contact=ContactInfo(name="Jane Doe", email="jane@example.com"),
        summary="Backend engineer.",
    )


@pytest.fixture
def repository(profile, experiences, skills) -> InMemoryRepository:
    return InMemoryRepository(profile, experiences, skills)


@pytest.fixture
def cache() -> RewriteCache:
    return RewriteCache()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def make_orchestrator(cache, fast_policy):
    """Build an orchestrator with no backoff and a private gate."""

    def factory(provider, breaker_threshold: int = 5, max_in_flight: int = 4, policy=None):
        return RewriteOrchestrator(
            provider=provider,
            cache=cache,
            gate=ProviderGate(max_in_flight),
            retry_policy=policy or fast_policy,
            breaker_threshold=breaker_threshold,
        )

    return factory
