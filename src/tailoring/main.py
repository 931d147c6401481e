"""
Resume Tailor - Main entry point.
Tailors a resume from a YAML experience corpus to a job description and
writes the result as JSON. Can also re-score a previously generated resume.
"""

import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from generator.cache import RewriteCache
from generator.providers import OpenAIProvider
from generator.rewriter import RewriteOrchestrator
from shared.config import get_settings
from shared.exceptions import TailoringError
from shared.models import JobSpec, Resume
from shared.profile import JsonResumeRepository, YamlProfileRepository
from tailoring.service import TailoringService


def setup_logging():
    """Configure loguru logging."""
    settings = get_settings()
    logger.remove()

    if settings.log_format == "json":
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                "<level>{message}</level>"
            ),
            level=settings.log_level,
        )


def read_job_spec(
    job_file: Path,
    title: Optional[str],
    company: Optional[str],
    skills: tuple[str, ...] = (),
) -> JobSpec:
    return JobSpec(
        description=job_file.read_text(encoding="utf-8"),
        title=title,
        company=company,
        required_skills=list(skills),
    )


@click.group()
def cli():
    """Resume Tailor - select, rewrite and score resume bullets for a job."""
    setup_logging()


@cli.command()
@click.option(
    "--profile",
    "-p",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Profile YAML (default: PROFILE_PATH setting)",
)
@click.option(
    "--job",
    "-j",
    "job_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Text file with the job description",
)
@click.option("--title", "-t", default=None, help="Job title")
@click.option("--company", "-c", default=None, help="Company name")
@click.option(
    "--skill",
    "-s",
    "skills",
    multiple=True,
    help="Required skill (repeatable); extracted from the description if omitted",
)
@click.option("--language", "-L", default="en", help="Target language code (e.g. en, es, pt-br)")
@click.option("--no-ai", is_flag=True, help="Skip AI rewriting, keep original bullet text")
@click.option(
    "--deadline",
    type=float,
    default=None,
    help="Seconds the rewrite batch may take (default: REWRITE_DEADLINE_SECONDS)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the resume JSON here instead of the output directory",
)
def tailor(
    profile_path: Optional[Path],
    job_file: Path,
    title: Optional[str],
    company: Optional[str],
    skills: tuple[str, ...],
    language: str,
    no_ai: bool,
    deadline: Optional[float],
    output: Optional[Path],
):
    """
    Tailor a resume to a job description.

    Scores every bullet against the description, selects the best set within
    the length budget, rewrites them with the configured provider and
    assembles a scored resume.
    """
    settings = get_settings()
    repository = YamlProfileRepository(profile_path or settings.profile_path)
    job_spec = read_job_spec(job_file, title, company, skills)

    orchestrator = None
    if no_ai:
        logger.warning("AI rewriting disabled, bullets keep their original text")
    else:
        orchestrator = RewriteOrchestrator.from_settings(OpenAIProvider(settings), RewriteCache())

    service = TailoringService.from_settings(repository, orchestrator, settings)

    try:
        result = service.tailor(
            repository.user_id,
            job_spec,
            target_language=language,
            deadline=deadline,
        )
    except (TailoringError, FileNotFoundError) as e:
        logger.error(f"Tailoring failed: {e}")
        raise click.ClickException(str(e))

    resume = result.resume
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(resume.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Saved resume {resume.id} to {output}")
        path = output
    else:
        store = JsonResumeRepository(settings.output_dir)
        store.save(resume)
        path = store.path_for(resume.id)

    click.echo(f"Resume: {resume.display_name} -> {path}")
    click.echo(f"Score: {resume.score}/100, bullets: {len(resume.selected_bullets)}")
    if resume.generated_content and resume.generated_content.analysis.missing_keywords:
        missing = ", ".join(resume.generated_content.analysis.missing_keywords[:10])
        click.echo(f"Missing keywords: {missing}")
    if result.degraded:
        click.echo(f"Degraded bullets (original text kept): {len(result.degraded_ids)}")
    for warning in result.warnings:
        click.echo(f"Warning: {warning}")


@cli.command()
@click.option(
    "--profile",
    "-p",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Profile YAML (default: PROFILE_PATH setting)",
)
@click.option(
    "--resume",
    "-r",
    "resume_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Resume JSON written by 'tailor'",
)
@click.option(
    "--job",
    "-j",
    "job_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Score against a different job description",
)
@click.option("--write", is_flag=True, help="Store the new score in the resume file")
def rescore(
    profile_path: Optional[Path],
    resume_file: Path,
    job_file: Optional[Path],
    write: bool,
):
    """Recompute the match score of a generated resume without calling the provider."""
    settings = get_settings()
    repository = YamlProfileRepository(profile_path or settings.profile_path)
    resume = Resume.model_validate_json(resume_file.read_text(encoding="utf-8"))

    job_spec = None
    if job_file:
        job_spec = read_job_spec(
            job_file, resume.job_title, resume.company_name, tuple(resume.required_skills)
        )

    service = TailoringService.from_settings(repository, settings=settings)
    previous = resume.score
    try:
        score = service.rescore(resume, job_spec)
    except (TailoringError, FileNotFoundError) as e:
        logger.error(f"Rescoring failed: {e}")
        raise click.ClickException(str(e))

    if write:
        resume_file.write_text(resume.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Updated score in {resume_file}")

    click.echo(f"Score: {previous} -> {score}")


if __name__ == "__main__":
    cli()
