from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from typing import Optional
import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

# Import our models and database
import config
from completion import CompletionMarker, MarkResult
from database import Base, engine, get_db
from editor import ContentEditor
from errors import LMSError
from gateway import DataGateway
from models.auth import UserAuth, UserCreate, Token
from models.learning import (
    CompletionResponse,
    DashboardView,
    LessonCreate,
    LessonDetail,
    SessionContext,
    SubjectCreate,
    SubjectView,
)
from models import schema  # noqa: F401  registers the tables on Base
from views import ViewScope, load_dashboard, load_lesson, load_session, load_subject_view, sign_up_student

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application startup and shutdown events"""
    config.check_required()
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.warning(f"Could not create database tables: {e}")

    yield  # Server is running


app = FastAPI(
    title="Classroom LMS",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# Enable CORS for frontend connection
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# Shared across requests so a resubmission can see the first one is still running
app.state.completion_marker = CompletionMarker()


@app.exception_handler(LMSError)
async def lms_error_handler(request: Request, exc: LMSError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# --- Dependencies ------------------------------------------------------

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_gateway(db: Session = Depends(get_db), token: Optional[str] = Depends(oauth2_scheme)) -> DataGateway:
    return DataGateway(db, access_token=token)


def get_session_context(gateway: DataGateway = Depends(get_gateway)) -> SessionContext:
    """Resolved once per request and handed to every view and editor call"""
    return load_session(gateway)


# --- Auth --------------------------------------------------------------

@app.post("/api/auth/register", response_model=Token, status_code=201)
def register(user: UserCreate, db: Session = Depends(get_db)):
    """Register a new student and sign them in."""
    return sign_up_student(DataGateway(db), user)


@app.post("/api/auth/login", response_model=Token)
def login(creds: UserAuth, db: Session = Depends(get_db)):
    """Authenticate user and return JWT access token."""
    return DataGateway(db).sign_in(creds.email, creds.password)


@app.post("/api/auth/logout")
def logout(gateway: DataGateway = Depends(get_gateway)):
    gateway.sign_out()
    return {"message": "Signed out"}


# Test endpoint to verify connectivity
@app.get("/api/test")
def test_connection():
    return {"status": "ok", "message": "Backend is running"}


@app.get("/api/me", response_model=SessionContext)
async def me(ctx: SessionContext = Depends(get_session_context)):
    return ctx


# --- Dashboard & subjects ----------------------------------------------

@app.get("/api/dashboard", response_model=DashboardView)
async def dashboard(
    request: Request,
    q: Optional[str] = None,
    grade: Optional[str] = None,
    ctx: SessionContext = Depends(get_session_context),
    gateway: DataGateway = Depends(get_gateway),
):
    """Subjects visible to the viewer, each with its completion progress"""
    scope = ViewScope(request.is_disconnected, "dashboard")
    return await scope.deliver(await run_in_threadpool(load_dashboard, gateway, ctx, query=q, grade=grade))


@app.post("/api/subjects", response_model=DashboardView, status_code=201)
async def create_subject(
    fields: SubjectCreate,
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    gateway: DataGateway = Depends(get_gateway),
):
    await run_in_threadpool(ContentEditor(gateway).create_subject, ctx, fields)
    scope = ViewScope(request.is_disconnected, "dashboard")
    return await scope.deliver(await run_in_threadpool(load_dashboard, gateway, ctx))


@app.delete("/api/subjects/{subject_id}", response_model=DashboardView)
async def delete_subject(
    subject_id: str,
    request: Request,
    confirm: bool = False,
    ctx: SessionContext = Depends(get_session_context),
    gateway: DataGateway = Depends(get_gateway),
):
    await run_in_threadpool(ContentEditor(gateway).delete_subject, ctx, subject_id, confirmed=confirm)
    scope = ViewScope(request.is_disconnected, "dashboard")
    return await scope.deliver(await run_in_threadpool(load_dashboard, gateway, ctx))


@app.get("/api/subjects/{subject_id}", response_model=SubjectView)
async def get_subject(
    subject_id: str,
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    gateway: DataGateway = Depends(get_gateway),
):
    scope = ViewScope(request.is_disconnected, "subject")
    return await scope.deliver(await run_in_threadpool(load_subject_view, gateway, ctx, subject_id))


@app.post("/api/subjects/{subject_id}/lessons", response_model=SubjectView, status_code=201)
async def create_lesson(
    subject_id: str,
    fields: LessonCreate,
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    gateway: DataGateway = Depends(get_gateway),
):
    await run_in_threadpool(ContentEditor(gateway).create_lesson, ctx, subject_id, fields)
    scope = ViewScope(request.is_disconnected, "subject")
    return await scope.deliver(await run_in_threadpool(load_subject_view, gateway, ctx, subject_id))


# --- Lessons -----------------------------------------------------------

@app.get("/api/lessons/{lesson_id}", response_model=LessonDetail)
async def get_lesson(
    lesson_id: str,
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    gateway: DataGateway = Depends(get_gateway),
):
    scope = ViewScope(request.is_disconnected, "lesson")
    return await scope.deliver(await run_in_threadpool(load_lesson, gateway, lesson_id))


@app.post("/api/lessons/{lesson_id}/complete", response_model=CompletionResponse)
async def complete_lesson(
    lesson_id: str,
    request: Request,
    response: Response,
    ctx: SessionContext = Depends(get_session_context),
    gateway: DataGateway = Depends(get_gateway),
):
    """Mark a lesson complete; repeats are harmless"""
    lesson = await run_in_threadpool(load_lesson, gateway, lesson_id)
    marker: CompletionMarker = request.app.state.completion_marker
    result = await marker.mark_complete(gateway, ctx.user_id, lesson_id)
    if result == MarkResult.IN_PROGRESS:
        response.status_code = 202
    return CompletionResponse(status=result.value, lesson_id=lesson_id, next_url=f"/subject/{lesson.subject_id}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
