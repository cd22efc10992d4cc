import json
import logging
from typing import Callable, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .auth import RequestContext
from .extractor import ExtractionResult, Text, extract_text
from .models import Project
from .schemas import ScoreResult
from .scorer import score_project
from .storage import resolve_upload

logger = logging.getLogger(__name__)


class SubmissionError(Exception):
    """Raised when a project submission is rejected before scoring."""


def parse_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def validate_submission(ctx: RequestContext, title: str, description: str) -> Tuple[str, str]:
    """Return the stripped title and description or raise SubmissionError."""
    if not ctx.is_authenticated:
        raise SubmissionError("You must be logged in to create a project.")
    title = title.strip()
    description = description.strip()
    if not title or not description:
        raise SubmissionError("Title and description are required.")
    return title, description


def build_analysis_text(description: str, file_text: Optional[str]) -> str:
    if file_text:
        return f"{description}\n\nFile Content: {file_text}"
    return description


class SubmissionService:
    """Creates projects and scores them from their description and upload."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        extractor: Callable[..., ExtractionResult] = extract_text,
        scorer: Callable[[str], ScoreResult] = score_project,
    ):
        self.session_factory = session_factory
        self.extractor = extractor
        self.scorer = scorer

    async def create_project(
        self,
        ctx: RequestContext,
        title: str,
        description: str,
        tags: Optional[List[str]] = None,
        file_url: Optional[str] = None,
    ) -> Tuple[Project, ScoreResult]:
        title, description = validate_submission(ctx, title, description)

        # --- Save draft ---
        async with self.session_factory() as session:
            project = Project(
                title=title,
                description=description,
                owner_id=ctx.user_id,
                file_url=file_url,
                tags=json.dumps(tags or []),
            )
            session.add(project)
            await session.commit()
            project_id = project.id

        # --- Analyse ---
        file_text = None
        if file_url:
            extraction = await run_in_threadpool(self.extractor, resolve_upload(file_url))
            if isinstance(extraction, Text):
                file_text = extraction.content
            else:
                logger.info(
                    "Project %s: analysing description only (%s)",
                    project_id, extraction.reason,
                )

        result = self.scorer(build_analysis_text(description, file_text))

        # --- Persist scores ---
        async with self.session_factory() as session:
            project = await session.get(Project, project_id)
            project.clarity_score = result.clarity_score
            project.creativity_score = result.creativity_score
            project.technicality_score = result.technicality_score
            project.overall_score = result.overall_score
            project.feedback = result.feedback
            await session.commit()

        logger.info(
            "Project %s scored %.1f by user %s", project_id, result.overall_score, ctx.user_id
        )
        return project, result
