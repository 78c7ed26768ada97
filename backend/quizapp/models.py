"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Quiz sessions are persisted here rather than held in process memory, so
any worker can serve any request of a session.
"""

from typing import List, Optional
from uuid import uuid4
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=_utcnow)


class Topic(SQLModel, table=True):
    """A named group of questions a quiz is drawn from."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    questions: List['Question'] = Relationship(back_populates='topic')


class Question(SQLModel, table=True):
    """A multiple-choice question.

    `points` is the full-credit value and `difficulty_level` runs from 1
    (easiest) to 5.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    topic_id: int = Field(foreign_key='topic.id', index=True)
    question_text: str
    explanation: Optional[str] = None
    points: float = 1.0
    difficulty_level: int = Field(default=3, index=True)
    topic: Optional[Topic] = Relationship(back_populates='questions')
    options: List['Option'] = Relationship(back_populates='question')


class Option(SQLModel, table=True):
    """Selectable option for a `Question`.

    `partial_credit_percentage` (0-100) only matters for incorrect options.
    """
    __tablename__ = 'question_option'

    id: Optional[int] = Field(default=None, primary_key=True)
    question_id: int = Field(foreign_key='question.id', index=True)
    option_text: str
    is_correct: bool = False
    partial_credit_percentage: float = 0.0
    question: Optional[Question] = Relationship(back_populates='options')


class QuizSession(SQLModel, table=True):
    """A running or completed quiz for one user and topic."""
    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    topic_id: int = Field(foreign_key='topic.id')
    scoring_policy: str = 'standard'
    difficulty_level: int = 3
    total_questions: int = 0
    raw_score: float = 0.0
    max_possible_score: float = 0.0
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None


class SessionQuestion(SQLModel, table=True):
    """Ordered membership of a question in a `QuizSession`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key='quizsession.id', index=True)
    question_id: int = Field(foreign_key='question.id')
    position: int


class QuizAnswer(SQLModel, table=True):
    """A scored answer inside a `QuizSession`.

    Keeps the full scoring result including the applied modifier trace so
    scores can be audited later.
    """
    __table_args__ = (UniqueConstraint('session_id', 'question_id'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key='quizsession.id', index=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    topic_id: int = Field(foreign_key='topic.id', index=True)
    question_id: int = Field(foreign_key='question.id')
    option_id: Optional[int] = None
    is_correct: bool = False
    confidence_level: Optional[int] = None
    time_spent: Optional[float] = None
    points_earned: float = 0.0
    points_possible: float = 0.0
    percentage: float = 0.0
    feedback: str = ''
    applied_modifiers: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    answered_at: datetime = Field(default_factory=_utcnow)
