"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the adaptive quiz backend.
Controllers are intentionally thin: they accept validated requests,
delegate to services, and map service errors onto HTTP status codes
(`LookupError` -> 404, `ValueError` -> 400).

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- GET /topics
- POST /topics
- GET /topics/{topic_id}/questions
- POST /topics/{topic_id}/questions
- POST /topics/{topic_id}/import
- POST /quiz/start
- POST /quiz/submit-answer
- POST /quiz/complete
- GET /quiz/session/{session_id}
- GET /scoring/policies
- GET /health
"""

from fastapi import FastAPI, Depends, UploadFile, File, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlmodel import Session
import json
import logging
import time
import uuid

from .config import settings
from .database import create_db_and_tables, get_session
from . import services, repositories, models
from .auth import get_current_user
from .schemas import RegisterIn, TopicIn, QuestionIn, StartQuizIn, SubmitAnswerIn, CompleteQuizIn
from .scoring import registry
from .utils.feedback import supported_locales

app = FastAPI(title="Adaptive Quiz API")
logger = logging.getLogger("quizapp.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    context["status_code"] = response.status_code
    context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


def _raise_http(exc: Exception):
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=404, detail=str(exc))
    raise HTTPException(status_code=400, detail=str(exc))


@app.post('/auth/register')
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user (idempotent).

    Returns the existing user if the username is already taken, which
    keeps automation and tests simple.
    """
    existing = repositories.UserRepository(db).get_by_username(payload.username)
    if existing:
        return {'id': existing.id, 'username': existing.username}
    user = services.AuthService(db).register(payload.username, payload.password)
    return {'id': user.id, 'username': user.username}


@app.post('/auth/login')
def login(payload: RegisterIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get('/topics')
def list_topics(db: Session = Depends(get_session)):
    """List all topics."""
    return [
        {'id': t.id, 'name': t.name, 'description': t.description}
        for t in repositories.TopicRepository(db).list_all()
    ]


@app.post('/topics')
def create_topic(payload: TopicIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Create a topic, or return the existing one with the same name."""
    repo = repositories.TopicRepository(db)
    topic = repo.get_by_name(payload.name) or repo.create(models.Topic(name=payload.name, description=payload.description))
    return {'id': topic.id, 'name': topic.name, 'description': topic.description}


@app.get('/topics/{topic_id}/questions')
def list_questions(topic_id: int, db: Session = Depends(get_session)):
    """List the questions of a topic without revealing the correct options."""
    if not repositories.TopicRepository(db).get(topic_id):
        raise HTTPException(status_code=404, detail='topic not found')
    opt_repo = repositories.OptionRepository(db)
    return [
        services.sanitize_question(q, opt_repo.list_for_question(q.id))
        for q in repositories.QuestionRepository(db).list_by_topic(topic_id)
    ]


@app.post('/topics/{topic_id}/questions')
def create_question(topic_id: int, payload: QuestionIn, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    """Add a single question to a topic."""
    try:
        q = services.ImportService(db).create_question(topic_id, payload.model_dump())
    except (LookupError, ValueError) as e:
        _raise_http(e)
    return {'id': q.id}


@app.post('/topics/{topic_id}/import')
def import_questions(topic_id: int, file: UploadFile = File(...), db: Session = Depends(get_session),
                     user: models.User = Depends(get_current_user)):
    """Upload a JSON or CSV file and import any questions found.

    Returns a JSON summary with created/skipped counts and per-item errors.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail='no file')
    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail='file too large')
    try:
        return services.ImportService(db).import_file(content, file.filename, topic_id)
    except (LookupError, ValueError) as e:
        _raise_http(e)


@app.post('/quiz/start')
def start_quiz(payload: StartQuizIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Start a session with questions picked around the user's level."""
    try:
        return services.QuizService(db).start(
            user.id, payload.topic_id, payload.question_count, payload.difficulty_level,
            payload.scoring_policy, seed=payload.seed,
        )
    except (LookupError, ValueError) as e:
        _raise_http(e)


@app.post('/quiz/submit-answer')
def submit_answer(payload: SubmitAnswerIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Score one answer of a running session."""
    try:
        return services.QuizService(db).submit_answer(
            user.id, payload.session_id, payload.question_id, payload.selected_option_id,
            payload.confidence_level, payload.time_spent, payload.locale,
        )
    except (LookupError, ValueError) as e:
        _raise_http(e)


@app.post('/quiz/complete')
def complete_quiz(payload: CompleteQuizIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Close a session and return its summary."""
    try:
        return services.QuizService(db).complete(user.id, payload.session_id, payload.locale)
    except (LookupError, ValueError) as e:
        _raise_http(e)


@app.get('/quiz/session/{session_id}')
def session_status(session_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Current progress of a session."""
    try:
        return services.QuizService(db).status(user.id, session_id)
    except LookupError as e:
        _raise_http(e)


@app.get('/scoring/policies')
def scoring_policies():
    """Names accepted as `scoring_policy`; join names with `+` to combine them."""
    return {'policies': registry.names(), 'default': settings.DEFAULT_SCORING_POLICY, 'locales': supported_locales()}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
