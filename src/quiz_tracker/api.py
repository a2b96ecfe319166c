"""FastAPI application exposing the quiz service over HTTP."""
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from quiz_tracker.config import Settings, get_settings
from quiz_tracker.db import init_db
from quiz_tracker.errors import (
    AuthenticationError, ConcurrentUpdateConflict, InvalidMode, QuestionNotFound,
    QuizTrackerError, StoreUnavailable, TopicNotFound, UserNotFound,
)
from quiz_tracker.logging_setup import configure_logging
from quiz_tracker.questions import QuestionIndex
from quiz_tracker.schemas import (
    FavoriteRequest, FavoriteResponse, MessageOut, ProgressOut, QuestionOut, QuizOut,
    StatsOut, SubmitRequest, SubmitResponse, TopicSummaryOut, UserOut,
)
from quiz_tracker.service import QuizService
from quiz_tracker.store import ProgressStore
from quiz_tracker.users import Identity, StaticTokenVerifier, TokenVerifier

ERROR_STATUS = {
    AuthenticationError: 401,
    InvalidMode: 400,
    TopicNotFound: 404,
    UserNotFound: 404,
    QuestionNotFound: 404,
    ConcurrentUpdateConflict: 409,
    StoreUnavailable: 503,
}


def _status_for(error: QuizTrackerError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def create_app(service: QuizService, verifier: TokenVerifier) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting quiz tracker API...")
        yield
        logger.info("Shutting down quiz tracker API...")

    app = FastAPI(
        title="Quiz Tracker API",
        description="Topic quizzes with per-question mastery tracking.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(QuizTrackerError)
    async def handle_error(request: Request, exc: QuizTrackerError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status, content={"error": str(exc)})

    def current_identity(authorization: Optional[str] = Header(default=None)) -> Identity:
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("No token provided")
        return verifier.verify(authorization[len("Bearer "):].strip())

    def current_user_id(identity: Identity = Depends(current_identity)) -> str:
        return identity.uid

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    # Auth

    @app.post("/api/auth/login", response_model=UserOut)
    def login(identity: Identity = Depends(current_identity)) -> UserOut:
        user = service.login(identity)
        return UserOut(id=user.id, email=user.email, display_name=user.display_name, created_at=user.created_at)

    @app.get("/api/auth/me", response_model=UserOut)
    def me(user_id: str = Depends(current_user_id)) -> UserOut:
        user = service.get_user(user_id)
        return UserOut(id=user.id, email=user.email, display_name=user.display_name, created_at=user.created_at)

    @app.delete("/api/auth/progress", response_model=MessageOut)
    def reset_all_progress(user_id: str = Depends(current_user_id)) -> MessageOut:
        service.get_user(user_id)
        service.reset_progress(user_id)
        return MessageOut(message="All progress reset successfully")

    @app.delete("/api/auth/account", response_model=MessageOut)
    def delete_account(user_id: str = Depends(current_user_id)) -> MessageOut:
        service.delete_account(user_id)
        return MessageOut(message="Account deleted successfully")

    @app.get("/api/users/me/stats", response_model=StatsOut)
    def stats(user_id: str = Depends(current_user_id)) -> StatsOut:
        return StatsOut(**service.user_stats(user_id))

    # Topics

    @app.get("/api/topics", response_model=List[TopicSummaryOut])
    def list_topics(user_id: str = Depends(current_user_id)) -> List[TopicSummaryOut]:
        return [TopicSummaryOut(**s) for s in service.topic_summaries(user_id)]

    @app.get("/api/topics/{topic_id}/progress", response_model=ProgressOut)
    def topic_progress(topic_id: str, user_id: str = Depends(current_user_id)) -> ProgressOut:
        return ProgressOut(**service.topic_progress(user_id, topic_id))

    @app.delete("/api/topics/{topic_id}/progress", response_model=MessageOut)
    def reset_topic_progress(topic_id: str, user_id: str = Depends(current_user_id)) -> MessageOut:
        service.get_user(user_id)
        service.reset_progress(user_id, topic_id)
        return MessageOut(message="Progress reset successfully")

    @app.get("/api/topics/{topic_id}/favorites", response_model=List[QuestionOut])
    def favorites(topic_id: str, user_id: str = Depends(current_user_id)) -> List[QuestionOut]:
        return [QuestionOut(**q) for q in service.get_favorites(user_id, topic_id)]

    @app.delete("/api/topics/{topic_id}/favorites", response_model=MessageOut)
    def clear_favorites(topic_id: str, user_id: str = Depends(current_user_id)) -> MessageOut:
        service.get_user(user_id)
        service.clear_favorites(user_id, topic_id)
        return MessageOut(message="All favorites cleared")

    # Quiz

    @app.get("/api/quiz/{topic_id}/{mode}", response_model=QuizOut)
    def get_quiz(topic_id: str, mode: str, user_id: str = Depends(current_user_id)) -> QuizOut:
        return QuizOut(**service.get_quiz(user_id, topic_id, mode))

    @app.post("/api/quiz/submit", response_model=SubmitResponse)
    def submit(payload: SubmitRequest, user_id: str = Depends(current_user_id)) -> SubmitResponse:
        outcomes = [(r.question_id, r.is_correct) for r in payload.results]
        progress = service.submit_results(user_id, payload.topic_id, payload.mode, outcomes)
        return SubmitResponse(
            success=True, mistakes=len(progress.mistake_ids), mastered=len(progress.mastered_ids)
        )

    @app.post("/api/quiz/favorite", response_model=FavoriteResponse)
    def favorite(payload: FavoriteRequest, user_id: str = Depends(current_user_id)) -> FavoriteResponse:
        is_favorite = service.toggle_favorite(user_id, payload.topic_id, payload.question_id)
        return FavoriteResponse(is_favorite=is_favorite)

    return app


def build_service(settings: Settings) -> QuizService:
    """Construct the service and its collaborators from settings."""
    init_db(settings.db_path)
    store = ProgressStore(settings.db_path, timeout=settings.store_timeout, retries=settings.update_retries)
    questions = QuestionIndex(settings.db_path, timeout=settings.store_timeout)
    return QuizService(store, questions, settings.db_path, quiz_size=settings.quiz_size)


def app_from_settings() -> FastAPI:
    """App factory for `uvicorn --factory quiz_tracker.api:app_from_settings`."""
    settings = get_settings()
    configure_logging(settings.log_level)
    if settings.tokens_file:
        verifier = StaticTokenVerifier.from_file(settings.tokens_file)
    else:
        logger.warning("No tokens file configured; every request will be rejected as unauthenticated")
        verifier = StaticTokenVerifier({})
    return create_app(build_service(settings), verifier)
