"""
Prompts for bullet rewriting.
"""

import re

from shared.models import Bullet, JobSpec

LANGUAGE_NAMES = {
    "en": "English",
    "pt-br": "Brazilian Portuguese",
    "pt": "Portuguese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
}

SYSTEM_PROMPT = """You are an expert resume writer and ATS optimization specialist.
You rewrite single resume bullet points so they match a target job while staying truthful.

DO NOT:
- Make up numbers, tools or achievements that are not in the original
- Add information not implied in the original
- Use buzzwords or cliches
- Return anything except the rewritten bullet"""


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


def build_context(job_spec: JobSpec, keywords: list[str]) -> str:
    """Job context sent alongside every rewrite prompt for the same run."""
    lines = [SYSTEM_PROMPT, "", f"Target role: {job_spec.display_name}"]
    if keywords:
        lines.append(f"Priority keywords: {', '.join(keywords[:15])}")
    lines.append("")
    lines.append("Job description:")
    lines.append(job_spec.description[:3000])
    return "\n".join(lines)


def build_rewrite_prompt(bullet: Bullet, target_language: str) -> str:
    return f"""Original bullet point:
{bullet.content}

Rewrite this bullet for the target role:
1. Keep it achievement-focused and start with a strong action verb
2. Keep every metric that is already present
3. Weave in priority keywords only where they are truthful
4. Keep it under 30 words
5. Write strictly in {language_name(target_language)}

Output ONLY the rewritten bullet point, nothing else."""


def clean_bullet(text: str) -> str:
    """Strip the decorations models like to add around a bullet."""
    text = (text or "").strip()
    text = text.strip('"\'')
    text = re.sub(r"^[\-\*•]\s*", "", text)
    text = re.sub(r"\*\*(.*?)\*\*", r"\1", text)
    text = " ".join(text.split())
    if text:
        text = text[0].upper() + text[1:]
    return text
