"""
Pydantic models for the experience corpus, job specs and tailored resumes.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.exceptions import ValidationError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExperienceType(str, Enum):
    """Kind of experience a set of bullets belongs to."""

    WORK = "work"
    EDUCATION = "education"
    CERTIFICATION = "certification"
    PROJECT = "project"
    FREELANCE = "freelance"
    VOLUNTEER = "volunteer"
    OPEN_SOURCE = "open_source"
    HACKATHON = "hackathon"
    SIDE_PROJECT = "side_project"
    EVENT_ORGANIZATION = "event_organization"
    PUBLICATION = "publication"
    AWARD = "award"


class ResumeStatus(str, Enum):
    """Resume lifecycle status."""

    DRAFT = "draft"  # Created, nothing generated yet
    GENERATED = "generated"  # Tailored content assembled
    REVIEWED = "reviewed"  # Checked by the user
    SUBMITTED = "submitted"  # Sent with an application
    INTERVIEW = "interview"  # Got interview
    REJECTED = "rejected"  # Terminal
    ACCEPTED = "accepted"  # Terminal


RESUME_TRANSITIONS: dict[ResumeStatus, tuple[ResumeStatus, ...]] = {
    ResumeStatus.DRAFT: (ResumeStatus.GENERATED,),
    ResumeStatus.GENERATED: (ResumeStatus.REVIEWED, ResumeStatus.DRAFT),
    ResumeStatus.REVIEWED: (ResumeStatus.SUBMITTED, ResumeStatus.GENERATED),
    ResumeStatus.SUBMITTED: (ResumeStatus.INTERVIEW, ResumeStatus.REJECTED),
    ResumeStatus.INTERVIEW: (ResumeStatus.ACCEPTED, ResumeStatus.REJECTED),
    ResumeStatus.REJECTED: (),
    ResumeStatus.ACCEPTED: (),
}


class Bullet(BaseModel):
    """Atomic achievement statement tied to one experience."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Bullet ID")
    experience_id: str = Field(..., description="Owning experience ID")
    content: str = Field(..., min_length=1, description="Bullet text")
    impact_score: int = Field(default=50, ge=0, le=100)
    keywords: tuple[str, ...] = Field(default_factory=tuple)
    display_order: int = Field(default=0)

    @property
    def is_high_impact(self) -> bool:
        return self.impact_score >= 70

    @property
    def is_low_impact(self) -> bool:
        return self.impact_score < 40

    def has_keyword(self, keyword: str) -> bool:
        return keyword in self.keywords


class Experience(BaseModel):
    """Experience entry owning an ordered list of bullets."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(..., description="Experience ID")
    user_id: str = Field(..., description="Owning user ID")
    type: ExperienceType = Field(default=ExperienceType.WORK)
    title: str = Field(..., description="Role or entry title")
    organization: str = Field(default="")
    location: Optional[str] = Field(default=None)
    start_date: date = Field(..., description="Start of the date range")
    end_date: Optional[date] = Field(default=None)
    is_current: bool = Field(default=False)
    display_order: int = Field(default=0)
    bullets: list[Bullet] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_dates(self) -> "Experience":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end date must be after start date")
        if self.is_current and self.end_date is not None:
            raise ValueError("current experience cannot have an end date")
        return self

    @property
    def date_range(self) -> str:
        end = "Present" if self.is_current else (self.end_date.isoformat() if self.end_date else "")
        return f"{self.start_date.isoformat()} - {end}" if end else self.start_date.isoformat()


class Skill(BaseModel):
    """User skill with proficiency."""

    name: str = Field(..., min_length=1)
    category: Optional[str] = Field(default=None)
    proficiency: int = Field(default=50, ge=0, le=100)
    is_highlighted: bool = Field(default=False)
    display_order: int = Field(default=0)

    @property
    def is_expert(self) -> bool:
        return self.proficiency >= 80


class ContactInfo(BaseModel):
    """Contact block rendered at the top of a resume."""

    name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    headline: str = ""
    website: str = ""
    linkedin: str = ""
    github: str = ""


class Profile(BaseModel):
    """User profile data that is not part of the bullet corpus."""

    user_id: str = Field(..., description="User ID")
    contact: ContactInfo = Field(default_factory=ContactInfo)
    summary: str = Field(default="")
    preferred_language: str = Field(default="en")


class JobSpec(BaseModel):
    """Job description the resume is tailored to. Never persisted by the engine."""

    description: str = Field(default="", description="Raw job description text")
    title: Optional[str] = Field(default=None)
    company: Optional[str] = Field(default=None)
    required_skills: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        if self.title and self.company:
            return f"{self.title} at {self.company}"
        if self.title:
            return self.title
        if self.company:
            return f"Position at {self.company}"
        return "Untitled position"


class TailoredBullet(BaseModel):
    """A selected bullet with the text used in the resume."""

    bullet_id: str
    original_content: str
    tailored_content: str
    degraded: bool = False


class TailoredExperience(BaseModel):
    """Experience section of a generated resume."""

    model_config = ConfigDict(use_enum_values=True)

    experience_id: str
    type: ExperienceType
    title: str
    organization: str
    start_date: date
    end_date: Optional[date] = None
    is_current: bool = False
    bullets: list[TailoredBullet] = Field(default_factory=list)


class ResumeAnalysis(BaseModel):
    """Keyword analysis of the tailored resume."""

    matched_keywords: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)


class ResumeContent(BaseModel):
    """Structured resume document."""

    contact: ContactInfo = Field(default_factory=ContactInfo)
    summary: str = ""
    experiences: list[TailoredExperience] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    analysis: ResumeAnalysis = Field(default_factory=ResumeAnalysis)


class Resume(BaseModel):
    """Resume tailored to a job description."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(..., description="Resume ID")
    user_id: str = Field(..., description="Owning user ID")
    job_description: str = Field(default="")
    job_title: Optional[str] = Field(default=None)
    company_name: Optional[str] = Field(default=None)
    required_skills: list[str] = Field(default_factory=list)
    target_language: str = Field(default="en")
    selected_bullets: list[str] = Field(default_factory=list)
    generated_content: Optional[ResumeContent] = Field(default=None)
    score: int = Field(default=0, ge=0, le=100)
    status: ResumeStatus = Field(default=ResumeStatus.DRAFT)
    notes: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def transition_status(self, new_status: ResumeStatus) -> None:
        """Move to a new status, enforcing the lifecycle table."""
        try:
            target = ResumeStatus(new_status)
        except ValueError:
            raise ValidationError(f"invalid resume status: {new_status}", field="status")

        current = ResumeStatus(self.status)
        if target not in RESUME_TRANSITIONS[current]:
            raise ValidationError(
                f"invalid status transition {current.value} -> {target.value}",
                field="status",
            )
        self.status = target.value
        self.updated_at = _utcnow()

    @property
    def is_generated(self) -> bool:
        return self.status in (ResumeStatus.GENERATED.value, ResumeStatus.REVIEWED.value)

    @property
    def is_submitted(self) -> bool:
        return self.status in (
            ResumeStatus.SUBMITTED.value,
            ResumeStatus.INTERVIEW.value,
            ResumeStatus.REJECTED.value,
            ResumeStatus.ACCEPTED.value,
        )

    @property
    def display_name(self) -> str:
        return JobSpec(title=self.job_title, company=self.company_name).display_name


@dataclass
class ScoredBullet:
    """Relevance of one bullet against one job description. Recomputed per run."""

    bullet: Bullet
    relevance: float
    matched_keywords: frozenset[str] = field(default_factory=frozenset)

    @property
    def bullet_id(self) -> str:
        return self.bullet.id


@dataclass
class TokenUsage:
    """Token counts reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )
