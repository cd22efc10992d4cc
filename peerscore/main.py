import json
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from starlette.middleware.sessions import SessionMiddleware

from .auth import (
    MAX_PASSWORD_BYTES,
    MIN_PASSWORD_CHARS,
    RequestContext,
    get_request_context,
    hash_password,
    login_session,
    logout_session,
    password_too_long,
    verify_password,
)
from .database import Base, SessionLocal, engine
from .models import Project, Review, User
from .schemas import MAX_SCORE, MIN_SCORE, ProjectOut, ReviewOut
from .storage import UPLOAD_DIR, UploadError, save_upload
from .submission import SubmissionError, SubmissionService, parse_tags, validate_submission

TEMPLATES_DIR = Path(__file__).parent / "templates"
SESSION_SECRET = os.getenv("SESSION_SECRET", "fallback_secret")

# --- Rate limiting ---
RATE_LIMIT_PER_IP = os.getenv("RATE_LIMIT_PER_IP", "30/hour")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "20/minute")

limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(title="PeerScore", lifespan=lifespan)
app.state.limiter = limiter
app.state.submission_service = SubmissionService(SessionLocal)
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def get_submission_service(request: Request) -> SubmissionService:
    return request.app.state.submission_service


def _render(request: Request, name: str, ctx: RequestContext, **context):
    return templates.TemplateResponse(
        request,
        name,
        {"user": ctx.username, **context},
    )


def _login_redirect() -> RedirectResponse:
    return RedirectResponse(url="/login", status_code=303)


def _project_out(project: Project) -> ProjectOut:
    return ProjectOut(
        id=project.id,
        title=project.title,
        description=project.description,
        tags=json.loads(project.tags or "[]"),
        file_url=project.file_url,
        owner=project.owner.username if project.owner else None,
        clarity_score=project.clarity_score,
        creativity_score=project.creativity_score,
        technicality_score=project.technicality_score,
        overall_score=project.overall_score,
        feedback=project.feedback,
        created_at=project.created_at,
    )


def _parse_review_score(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if not MIN_SCORE <= value <= MAX_SCORE:
        raise HTTPException(
            status_code=400,
            detail=f"Scores must be whole numbers between {MIN_SCORE} and {MAX_SCORE}.",
        )
    return value


async def _load_project(project_id: int) -> Project:
    async with SessionLocal() as session:
        project = await session.scalar(
            select(Project)
            .where(Project.id == project_id)
            .options(
                selectinload(Project.owner),
                selectinload(Project.reviews).selectinload(Review.reviewer),
            )
        )
    if not project:
        raise HTTPException(status_code=404, detail="Project not found.")
    return project


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    detail = "Rate limit exceeded. Please slow down and try again later."
    if request.headers.get("HX-Request"):
        return Response(
            content=json.dumps({"detail": detail}),
            status_code=429,
            media_type="application/json",
        )
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "user": request.session.get("username"),
            "detail": detail,
            "status_code": 429,
        },
        status_code=429,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Return HTML error responses for browsers, JSON for HTMX and API calls."""
    if request.headers.get("HX-Request") or request.url.path.startswith("/api/"):
        return Response(
            content=json.dumps({"detail": exc.detail}),
            status_code=exc.status_code,
            media_type="application/json",
        )
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "user": request.session.get("username"),
            "detail": exc.detail,
            "status_code": exc.status_code,
        },
        status_code=exc.status_code,
    )


# ---------------------------------------------------------------------------
# Pages & auth
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
async def index(request: Request, ctx: RequestContext = Depends(get_request_context)):
    return _render(request, "home.html", ctx)


@app.get("/signup", response_class=HTMLResponse)
async def signup_form(request: Request):
    return _render(request, "signup.html", RequestContext())


@app.post("/signup", response_class=HTMLResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def signup(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
):
    username = username.strip()
    email = email.strip().lower()
    if not username or not email:
        raise HTTPException(status_code=400, detail="Username and email are required.")
    if len(password) < MIN_PASSWORD_CHARS:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_CHARS} characters.",
        )
    if password_too_long(password):
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes.",
        )

    async with SessionLocal() as session:
        existing = await session.scalar(select(User).where(User.email == email))
        if existing:
            raise HTTPException(status_code=400, detail=f"User {email} exists!")

        password_hash = await run_in_threadpool(hash_password, password)
        user = User(username=username, email=email, password_hash=password_hash)
        session.add(user)
        await session.commit()

    logger.info("New user %s signed up", user.id)
    ctx = login_session(request, user.id, user.username)
    return _render(
        request, "success.html", ctx, msg="Signup Success!", detail=f"ID: {user.id}"
    )


@app.get("/login", response_class=HTMLResponse)
async def login_form(request: Request):
    return _render(request, "login.html", RequestContext())


@app.post("/login", response_class=HTMLResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def login(request: Request, email: str = Form(""), password: str = Form("")):
    async with SessionLocal() as session:
        user = await session.scalar(select(User).where(User.email == email.strip().lower()))

    if not user:
        raise HTTPException(status_code=401, detail="No account with that email!")
    if not await run_in_threadpool(verify_password, password, user.password_hash):
        logger.info("Failed login for user %s", user.id)
        raise HTTPException(status_code=401, detail="Wrong password!")

    ctx = login_session(request, user.id, user.username)
    return _render(
        request, "success.html", ctx, msg="Login Success!", detail=f"ID: {user.id}"
    )


@app.get("/logout")
async def logout(request: Request):
    logout_session(request)
    return RedirectResponse(url="/", status_code=303)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@app.get("/create-project", response_class=HTMLResponse)
async def create_project_form(
    request: Request, ctx: RequestContext = Depends(get_request_context)
):
    if not ctx.is_authenticated:
        return _login_redirect()
    return _render(request, "create_project.html", ctx)


@app.post("/create-project", response_class=HTMLResponse)
@limiter.limit(RATE_LIMIT_PER_IP)
async def create_project(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    tags: str = Form(""),
    project_file: Optional[UploadFile] = File(None, alias="projectFile"),
    ctx: RequestContext = Depends(get_request_context),
    service: SubmissionService = Depends(get_submission_service),
):
    if not ctx.is_authenticated:
        return _login_redirect()

    try:
        validate_submission(ctx, title, description)
        file_url = None
        if project_file is not None and project_file.filename:
            file_url = await save_upload(project_file)
        project, result = await service.create_project(
            ctx, title, description, parse_tags(tags), file_url
        )
    except (SubmissionError, UploadError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Unexpected error during project creation")
        raise HTTPException(
            status_code=500,
            detail="Project analysis failed. Please try again.",
        ) from exc

    return _render(
        request,
        "success.html",
        ctx,
        msg="Project Created & Analyzed!",
        detail=(
            f"{project.title} | Overall Score: {result.overall_score}/{MAX_SCORE}\n"
            f"Feedback: {result.feedback}"
        ),
    )


@app.get("/projects", response_class=HTMLResponse)
async def list_projects(request: Request, ctx: RequestContext = Depends(get_request_context)):
    async with SessionLocal() as session:
        projects = (
            await session.scalars(
                select(Project)
                .options(selectinload(Project.owner))
                .order_by(Project.created_at.desc(), Project.id.desc())
            )
        ).all()
    return _render(request, "projects.html", ctx, projects=[_project_out(p) for p in projects])


@app.get("/review/{project_id}", response_class=HTMLResponse)
async def review_page(
    request: Request, project_id: int, ctx: RequestContext = Depends(get_request_context)
):
    if not ctx.is_authenticated:
        return _login_redirect()
    project = await _load_project(project_id)
    return _render(
        request,
        "review.html",
        ctx,
        project=_project_out(project),
        reviews=project.reviews,
    )


@app.post("/submit-review", response_class=HTMLResponse)
async def submit_review(
    request: Request,
    project: str = Form(""),
    clarity: str = Form(""),
    creativity: str = Form(""),
    technicality: str = Form(""),
    comment: str = Form(""),
    ctx: RequestContext = Depends(get_request_context),
):
    if not ctx.is_authenticated:
        return _login_redirect()
    if not project.isdecimal():
        raise HTTPException(status_code=400, detail="A project must be selected.")

    review = Review(
        project_id=int(project),
        reviewer_id=ctx.user_id,
        clarity=_parse_review_score(clarity),
        creativity=_parse_review_score(creativity),
        technicality=_parse_review_score(technicality),
        comment=comment.strip(),
    )
    async with SessionLocal() as session:
        if not await session.get(Project, review.project_id):
            raise HTTPException(status_code=404, detail="Project not found.")
        session.add(review)
        await session.commit()

    logger.info("User %s reviewed project %s", ctx.user_id, review.project_id)
    return _render(request, "success.html", ctx, msg="Review Submitted!")


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------


@app.get("/api/projects", response_model=List[ProjectOut])
async def api_list_projects():
    async with SessionLocal() as session:
        projects = (
            await session.scalars(
                select(Project)
                .options(selectinload(Project.owner))
                .order_by(Project.created_at.desc(), Project.id.desc())
            )
        ).all()
    return [_project_out(p) for p in projects]


@app.get("/api/projects/{project_id}", response_model=ProjectOut)
async def api_get_project(project_id: int):
    return _project_out(await _load_project(project_id))


@app.get("/api/projects/{project_id}/reviews", response_model=List[ReviewOut])
async def api_project_reviews(project_id: int):
    project = await _load_project(project_id)
    return [
        ReviewOut(
            id=r.id,
            reviewer=r.reviewer.username if r.reviewer else None,
            clarity=r.clarity,
            creativity=r.creativity,
            technicality=r.technicality,
            comment=r.comment,
            created_at=r.created_at,
        )
        for r in project.reviews
    ]
