"""
File-backed repositories.
Loads a user's experience corpus from YAML and stores generated resumes as JSON.
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger

from shared.models import Bullet, ContactInfo, Experience, Profile, Resume, Skill


class YamlProfileRepository:
    """Serves one user's profile, experiences and skills from a YAML file."""

    def __init__(self, profile_path: Path):
        self.profile_path = profile_path
        self._data: Optional[dict[str, Any]] = None

    def load(self, path: Optional[Path] = None) -> dict[str, Any]:
        """Load raw profile data from YAML file."""
        path = path or self.profile_path
        if not path.exists():
            raise FileNotFoundError(f"Profile file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        self._data = data
        logger.info(f"Loaded profile for: {data.get('personal', {}).get('name', '')}")
        return data

    @property
    def data(self) -> dict[str, Any]:
        if self._data is None:
            self._data = self.load()
        return self._data

    @property
    def user_id(self) -> str:
        return str(self.data.get("user_id", "local"))

    def _owns(self, user_id: str) -> bool:
        if user_id != self.user_id:
            logger.warning(f"Profile {self.profile_path} does not belong to user {user_id}")
            return False
        return True

    def get_profile(self, user_id: str) -> Profile:
        if not self._owns(user_id):
            return Profile(user_id=user_id)

        personal = self.data.get("personal", {})
        contact = ContactInfo(
            name=personal.get("name", ""),
            email=personal.get("email", ""),
            phone=personal.get("phone", ""),
            location=personal.get("location", ""),
            headline=personal.get("headline", ""),
            website=personal.get("website", ""),
            linkedin=personal.get("linkedin", ""),
            github=personal.get("github", ""),
        )
        return Profile(
            user_id=user_id,
            contact=contact,
            summary=self.data.get("summary", ""),
            preferred_language=self.data.get("preferred_language", "en"),
        )

    def list_experiences(self, user_id: str) -> list[Experience]:
        if not self._owns(user_id):
            return []

        experiences = []
        for index, exp_data in enumerate(self.data.get("experiences", [])):
            exp_id = str(exp_data.get("id", f"exp-{index + 1}"))

            bullets = []
            for order, bullet_data in enumerate(exp_data.get("bullets", [])):
                # Plain strings are accepted for quick corpora
                if isinstance(bullet_data, str):
                    bullet_data = {"content": bullet_data}
                bullets.append(
                    Bullet(
                        id=str(bullet_data.get("id", f"{exp_id}-b{order + 1}")),
                        experience_id=exp_id,
                        content=bullet_data["content"],
                        impact_score=bullet_data.get("impact_score", 50),
                        keywords=tuple(bullet_data.get("keywords", [])),
                        display_order=bullet_data.get("display_order", order),
                    )
                )

            experiences.append(
                Experience(
                    id=exp_id,
                    user_id=user_id,
                    type=exp_data.get("type", "work"),
                    title=exp_data.get("title", ""),
                    organization=exp_data.get("organization", ""),
                    location=exp_data.get("location"),
                    start_date=exp_data["start_date"],
                    end_date=exp_data.get("end_date"),
                    is_current=exp_data.get("current", False),
                    display_order=exp_data.get("display_order", index),
                    bullets=bullets,
                )
            )

        logger.debug(f"Loaded {len(experiences)} experiences for {user_id}")
        return experiences

    def list_skills(self, user_id: str) -> list[Skill]:
        if not self._owns(user_id):
            return []

        return [
            Skill(
                name=skill_data["name"],
                category=skill_data.get("category"),
                proficiency=skill_data.get("proficiency", 50),
                is_highlighted=skill_data.get("highlighted", False),
                display_order=skill_data.get("display_order", order),
            )
            for order, skill_data in enumerate(self.data.get("skills", []))
        ]


class JsonResumeRepository:
    """Writes each resume to <output_dir>/<resume id>.json."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def path_for(self, resume_id: str) -> Path:
        return self.output_dir / f"{resume_id}.json"

    def save(self, resume: Resume) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(resume.id)
        path.write_text(resume.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Saved resume {resume.id} to {path}")

    def load(self, resume_id: str) -> Resume:
        path = self.path_for(resume_id)
        return Resume.model_validate_json(path.read_text(encoding="utf-8"))
