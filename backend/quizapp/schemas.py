"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and validate request bodies
before they reach the services, so the scoring core only ever sees
already-validated values.
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class RegisterIn(BaseModel):
    """Payload for user registration/login endpoints."""
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class TopicIn(BaseModel):
    """Payload for creating a topic."""
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None


class OptionIn(BaseModel):
    """A selectable option in an imported question."""
    option_text: str
    is_correct: bool = False
    partial_credit_percentage: float = Field(default=0, ge=0, le=100)


class QuestionIn(BaseModel):
    """Request format for importing a single question."""
    question_text: str
    options: List[OptionIn]
    explanation: Optional[str] = None
    points: float = Field(default=1, gt=0)
    difficulty_level: int = Field(default=3, ge=1, le=5)


class StartQuizIn(BaseModel):
    """Request body for starting a quiz session."""
    topic_id: int
    question_count: int = Field(default=20, ge=5, le=50)
    difficulty_level: int = Field(default=3, ge=1, le=5)
    scoring_policy: Optional[str] = None
    seed: Optional[int] = None


class SubmitAnswerIn(BaseModel):
    """A single answer submission. Correctness is never taken from the client."""
    session_id: str
    question_id: int
    selected_option_id: Optional[int] = None
    confidence_level: Optional[int] = Field(default=None, ge=1, le=5)
    time_spent: Optional[float] = Field(default=None, ge=0)
    locale: Optional[str] = None


class CompleteQuizIn(BaseModel):
    """Request body for completing a session."""
    session_id: str
    locale: Optional[str] = None
