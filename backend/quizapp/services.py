"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the scoring core and auxiliary logic. Services are intentionally thin:
they perform validation, translate database rows into the plain values
the scoring and selection code works on, and persist the outcome via
repositories.

Missing rows raise `LookupError` subclasses and invalid requests raise
`ValueError`; controllers map these onto HTTP status codes.
"""

from datetime import date, datetime, timedelta, timezone
import json
import logging
import random
from typing import Dict, List, Optional

from passlib.context import CryptContext
import jwt
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .scoring import (
    PerformanceMetrics,
    QuestionOption,
    QuizQuestion,
    ScoringContext,
    SubmittedAnswer,
    clamp_difficulty,
    is_known_policy,
    resolve_policy,
    safe_percentage,
)
from .selection import select_next, target_difficulty
from .utils import feedback
from .utils.parsers import parse_file_to_questions

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
METRICS_WINDOW = 20

logger = logging.getLogger("quizapp.quiz")


class TopicNotFound(LookupError):
    pass


class QuestionNotFound(LookupError):
    pass


class SessionNotFound(LookupError):
    pass


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo.
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _log_event(name: str, **payload):
    logger.info("%s %s", name, json.dumps(payload, ensure_ascii=True, default=str))


def to_quiz_question(question: models.Question, options: List[models.Option]) -> QuizQuestion:
    """Build the scoring core's view of a stored question."""
    return QuizQuestion(
        id=str(question.id),
        points=question.points,
        difficulty_level=clamp_difficulty(question.difficulty_level),
        options=tuple(
            QuestionOption(
                id=str(o.id),
                is_correct=o.is_correct,
                partial_credit_percentage=o.partial_credit_percentage,
            )
            for o in options
        ),
    )


def sanitize_question(question: models.Question, options: List[models.Option]) -> dict:
    """Client-facing shape of a question; correctness and partial credit stay hidden."""
    return {
        'id': question.id,
        'question_text': question.question_text,
        'points': question.points,
        'difficulty_level': question.difficulty_level,
        'options': [{'id': o.id, 'option_text': o.option_text} for o in options],
    }


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        hashed = PWD_CTX.hash(password)
        u = models.User(username=username, password_hash=hashed)
        return self.user_repo.create(u)

    def authenticate(self, username: str, password: str):
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class ImportService:
    """Import questions from files or payloads and persist them to the DB.

    Every question must carry exactly one correct option; malformed
    questions are rejected here so the scoring core can rely on it.
    """
    def __init__(self, session: Session):
        self.session = session
        self.topic_repo = repositories.TopicRepository(session)
        self.q_repo = repositories.QuestionRepository(session)

    def import_file(self, file_bytes: bytes, filename: str, topic_id: int, deduplicate: bool = True, dry_run: bool = False):
        """Parse `filename` contents and create `Question` and `Option` rows.

        Returns a dictionary with the number of created questions, skipped
        duplicates and any validation `errors` encountered per item.
        """
        if not self.topic_repo.get(topic_id):
            raise TopicNotFound(f"topic not found: {topic_id}")
        parsed = parse_file_to_questions(file_bytes, filename)
        created = 0
        skipped = 0
        errors = []
        for idx, p in enumerate(parsed):
            try:
                self.validate_question(p)
            except ValueError as e:
                errors.append({'index': idx, 'error': str(e), 'item': p})
                continue
            if deduplicate and self.q_repo.exists_by_topic_and_text(topic_id, p['question_text'].strip()):
                skipped += 1
                continue
            if not dry_run:
                self._persist(topic_id, p)
            created += 1
        return {'created': created, 'skipped': skipped, 'errors': errors}

    def create_question(self, topic_id: int, item: dict) -> models.Question:
        """Validate and store a single question payload."""
        if not self.topic_repo.get(topic_id):
            raise TopicNotFound(f"topic not found: {topic_id}")
        self.validate_question(item)
        return self._persist(topic_id, item)

    def _persist(self, topic_id: int, p: dict) -> models.Question:
        q = models.Question(
            topic_id=topic_id,
            question_text=p['question_text'].strip(),
            explanation=p.get('explanation'),
            points=p.get('points') or 1.0,
            difficulty_level=p.get('difficulty_level') or 3,
        )
        options = [
            models.Option(
                option_text=o['option_text'],
                is_correct=bool(o.get('is_correct')),
                partial_credit_percentage=0.0 if o.get('is_correct') else float(o.get('partial_credit_percentage') or 0),
            )
            for o in p['options']
        ]
        return self.q_repo.create(q, options)

    @staticmethod
    def validate_question(p: dict):
        """Validate a parsed question dictionary and raise ValueError on error."""
        if not isinstance(p, dict):
            raise ValueError('question item must be an object')
        qt = p.get('question_text')
        if not qt or not isinstance(qt, str) or not qt.strip():
            raise ValueError('missing or empty question_text')
        opts = p.get('options')
        if not opts or not isinstance(opts, list):
            raise ValueError('options missing or empty')
        for o in opts:
            if not isinstance(o, dict):
                raise ValueError('each option must be an object')
            if not o.get('option_text'):
                raise ValueError('option missing option_text')
            pct = o.get('partial_credit_percentage') or 0
            if not 0 <= pct <= 100:
                raise ValueError('partial_credit_percentage must be between 0 and 100')
        correct = sum(1 for o in opts if o.get('is_correct'))
        if correct != 1:
            raise ValueError(f'expected exactly one correct option, found {correct}')
        points = p.get('points')
        if points is not None and points <= 0:
            raise ValueError('points must be positive')
        level = p.get('difficulty_level')
        if level is not None and not 1 <= level <= 5:
            raise ValueError('difficulty_level must be between 1 and 5')


class PerformanceService:
    """Aggregate a user's answer history into a `PerformanceMetrics` snapshot."""
    def __init__(self, session: Session, window: int = METRICS_WINDOW):
        self.session = session
        self.window = window
        self.answer_repo = repositories.QuizAnswerRepository(session)

    def metrics_for(self, user_id: int, topic_id: Optional[int] = None, today: Optional[date] = None) -> Optional[PerformanceMetrics]:
        """Return metrics over the last `window` answers, or None without history."""
        recent = self.answer_repo.recent_for_user(user_id, topic_id, limit=self.window)
        if not recent:
            return None
        correct = sum(1 for a in recent if a.is_correct)
        times = [a.time_spent for a in recent if a.time_spent is not None]
        return PerformanceMetrics(
            recent_accuracy=correct / len(recent) * 100,
            average_response_time=sum(times) / len(times) if times else 0.0,
            consecutive_correct=self._leading_run(recent, True),
            consecutive_incorrect=self._leading_run(recent, False),
            current_streak=self.day_streak(user_id, today),
        )

    @staticmethod
    def _leading_run(newest_first: List[models.QuizAnswer], correct: bool) -> int:
        run = 0
        for a in newest_first:
            if a.is_correct != correct:
                break
            run += 1
        return run

    def day_streak(self, user_id: int, today: Optional[date] = None) -> int:
        """Count consecutive days with at least one answer, ending today or yesterday."""
        today = today or datetime.now(timezone.utc).date()
        days = sorted({_as_utc(ts).date() for ts in self.answer_repo.answer_timestamps(user_id)}, reverse=True)
        if not days or (today - days[0]).days > 1:
            return 0
        streak = 1
        for prev, cur in zip(days, days[1:]):
            if (prev - cur).days != 1:
                break
            streak += 1
        return streak


class QuizService:
    """Run quiz sessions: adaptive start, per-answer scoring, completion."""
    def __init__(self, session: Session):
        self.session = session
        self.topic_repo = repositories.TopicRepository(session)
        self.q_repo = repositories.QuestionRepository(session)
        self.opt_repo = repositories.OptionRepository(session)
        self.quiz_repo = repositories.QuizSessionRepository(session)
        self.answer_repo = repositories.QuizAnswerRepository(session)
        self.performance = PerformanceService(session)

    def start(self, user_id: int, topic_id: int, question_count: int = 20, difficulty_level: int = 3,
              scoring_policy: Optional[str] = None, seed: Optional[int] = None) -> dict:
        """Select questions for a new session and persist it.

        An unknown scoring policy is replaced by the configured default and
        reported back as `scoring_policy_fallback`.
        """
        if not self.topic_repo.get(topic_id):
            raise TopicNotFound(f"topic not found: {topic_id}")
        requested = scoring_policy or settings.DEFAULT_SCORING_POLICY
        fallback = not is_known_policy(requested)
        policy_name = settings.DEFAULT_SCORING_POLICY if fallback else requested
        if fallback:
            logger.warning("unknown scoring policy %r requested, using %r", requested, policy_name)

        rows = self.q_repo.list_by_topic(topic_id)
        options = {q.id: self.opt_repo.list_for_question(q.id) for q in rows}
        by_id = {str(q.id): q for q in rows}
        pool = [to_quiz_question(q, options[q.id]) for q in rows]

        metrics = self.performance.metrics_for(user_id, topic_id)
        rng = random.Random(seed) if seed is not None else None
        selected = select_next(pool, question_count, metrics, difficulty_level, rng=rng)
        chosen = [by_id[q.id] for q in selected]

        quiz = models.QuizSession(
            user_id=user_id,
            topic_id=topic_id,
            scoring_policy=policy_name,
            difficulty_level=target_difficulty(difficulty_level, metrics),
            total_questions=len(chosen),
            max_possible_score=sum(q.points for q in chosen),
        )
        quiz = self.quiz_repo.create(quiz, [q.id for q in chosen])
        _log_event("quiz_started", session_id=quiz.id, user_id=user_id, topic_id=topic_id,
                   policy=policy_name, difficulty=quiz.difficulty_level, questions=len(chosen))
        return {
            'session_id': quiz.id,
            'total_questions': quiz.total_questions,
            'scoring_policy': policy_name,
            'scoring_policy_fallback': fallback,
            'current_difficulty': quiz.difficulty_level,
            'questions': [sanitize_question(q, options[q.id]) for q in chosen],
        }

    def _owned_session(self, user_id: int, session_id: str) -> models.QuizSession:
        quiz = self.quiz_repo.get(session_id)
        if not quiz or quiz.user_id != user_id:
            raise SessionNotFound(f"session not found: {session_id}")
        return quiz

    def submit_answer(self, user_id: int, session_id: str, question_id: int, selected_option_id: Optional[int],
                      confidence_level: Optional[int] = None, time_spent: Optional[float] = None,
                      locale: Optional[str] = None) -> dict:
        """Score one answer with the session's policy and record it.

        Correctness is looked up from the selected option; an option that
        does not belong to the question counts as incorrect.
        """
        quiz = self._owned_session(user_id, session_id)
        if quiz.completed_at is not None:
            raise ValueError('session already completed')
        if question_id not in self.quiz_repo.question_ids(session_id):
            raise ValueError(f'question not part of session: {question_id}')
        if self.answer_repo.find(session_id, question_id):
            raise ValueError('question already answered')
        question = self.q_repo.get(question_id)
        if not question:
            raise QuestionNotFound(f"question not found: {question_id}")
        options = self.opt_repo.list_for_question(question_id)
        chosen = next((o for o in options if o.id == selected_option_id), None)
        is_correct = bool(chosen and chosen.is_correct)

        # Metrics are read before this answer is stored.
        metrics = self.performance.metrics_for(user_id, quiz.topic_id)
        context = ScoringContext(
            question=to_quiz_question(question, options),
            answer=SubmittedAnswer(
                question_id=str(question_id),
                selected_option_id=str(selected_option_id) if selected_option_id is not None else None,
                is_correct=is_correct,
                confidence_level=confidence_level,
                time_spent=time_spent,
            ),
            performance=metrics,
            locale=locale or settings.DEFAULT_LOCALE,
        )
        result = resolve_policy(quiz.scoring_policy).score(context)

        answer = models.QuizAnswer(
            session_id=quiz.id,
            user_id=user_id,
            topic_id=quiz.topic_id,
            question_id=question_id,
            option_id=chosen.id if chosen else None,
            is_correct=is_correct,
            confidence_level=confidence_level,
            time_spent=time_spent,
            points_earned=result.points_earned,
            points_possible=result.points_possible,
            percentage=result.percentage,
            feedback=result.feedback,
            applied_modifiers=list(result.applied_modifiers),
        )
        self.answer_repo.add(answer)
        self.session.refresh(quiz)
        answered = len(self.answer_repo.list_for_session(quiz.id))
        _log_event("answer_scored", session_id=quiz.id, question_id=question_id, correct=is_correct,
                   points=result.points_earned, modifiers=result.applied_modifiers)
        return {
            'is_correct': is_correct,
            **result.to_dict(),
            'current_score': safe_percentage(quiz.raw_score, quiz.max_possible_score),
            'questions_remaining': quiz.total_questions - answered,
            'explanation': question.explanation,
        }

    def complete(self, user_id: int, session_id: str, locale: Optional[str] = None) -> dict:
        """Close a session and summarise it."""
        quiz = self._owned_session(user_id, session_id)
        if quiz.completed_at is not None:
            raise ValueError('session already completed')
        answers = self.answer_repo.list_for_session(quiz.id)
        score = safe_percentage(quiz.raw_score, quiz.max_possible_score)
        correct = sum(1 for a in answers if a.is_correct)
        total_time = sum(a.time_spent or 0 for a in answers)
        total = quiz.total_questions
        quiz.completed_at = datetime.now(timezone.utc)
        self.quiz_repo.save(quiz)
        _log_event("quiz_completed", session_id=quiz.id, user_id=user_id, score=round(score, 2))
        locale = locale or settings.DEFAULT_LOCALE
        return {
            'session_id': quiz.id,
            'final_score': score,
            'raw_score': quiz.raw_score,
            'max_possible_score': quiz.max_possible_score,
            'total_questions': total,
            'correct_answers': correct,
            'incorrect_answers': total - correct,
            'time_spent': total_time,
            'average_time_per_question': total_time / total if total else 0.0,
            'topic_analysis': {
                'topic_id': quiz.topic_id,
                'accuracy': safe_percentage(correct, total),
                'average_time': total_time / total if total else 0.0,
            },
            'performance_summary': performance_summary(score),
            'recommendation': feedback.message('recommend_harder' if score >= 80 else 'keep_practicing', locale),
        }

    def status(self, user_id: int, session_id: str) -> dict:
        """Report progress of a session."""
        quiz = self._owned_session(user_id, session_id)
        answered = len(self.answer_repo.list_for_session(quiz.id))
        end = _as_utc(quiz.completed_at) if quiz.completed_at else datetime.now(timezone.utc)
        return {
            'session_id': quiz.id,
            'current_score': safe_percentage(quiz.raw_score, quiz.max_possible_score),
            'questions_answered': answered,
            'total_questions': quiz.total_questions,
            'time_elapsed': int((end - _as_utc(quiz.started_at)).total_seconds()),
            'current_difficulty': quiz.difficulty_level,
            'scoring_policy': quiz.scoring_policy,
            'completed': quiz.completed_at is not None,
        }


def performance_summary(score: float) -> Dict[str, bool]:
    """Bucket a final percentage into the summary bands shown to users."""
    return {
        'excellent': score >= 90,
        'good': 75 <= score < 90,
        'needs_improvement': score < 75,
    }
