"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
topics, questions, sessions, answers). Repositories return SQLModel
objects and perform commits/refreshes where appropriate.
"""

from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class TopicRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, topic: models.Topic) -> models.Topic:
        self.session.add(topic)
        self.session.commit()
        self.session.refresh(topic)
        return topic

    def get(self, topic_id: int) -> Optional[models.Topic]:
        return self.session.get(models.Topic, topic_id)

    def get_by_name(self, name: str) -> Optional[models.Topic]:
        stmt = select(models.Topic).where(models.Topic.name == name)
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.Topic]:
        return self.session.exec(select(models.Topic).order_by(models.Topic.name)).all()


class QuestionRepository:
    """CRUD operations for `Question` and related `Option` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, question: models.Question, options: List[models.Option]) -> models.Question:
        """Create a question and attach provided options.

        The function commits the question first to obtain an id, then
        assigns that id to options before committing them.
        """
        self.session.add(question)
        self.session.commit()
        self.session.refresh(question)
        for o in options:
            o.question_id = question.id
            self.session.add(o)
        self.session.commit()
        return question

    def list_by_topic(self, topic_id: int) -> List[models.Question]:
        """Return all questions for a given topic."""
        stmt = select(models.Question).where(models.Question.topic_id == topic_id).order_by(models.Question.id)
        return self.session.exec(stmt).all()

    def exists_by_topic_and_text(self, topic_id: int, question_text: str) -> bool:
        """Return True if a question with the same topic/text already exists."""
        stmt = select(models.Question.id).where(
            models.Question.topic_id == topic_id,
            models.Question.question_text == question_text
        )
        return self.session.exec(stmt).first() is not None

    def get(self, question_id: int) -> Optional[models.Question]:
        """Fetch a question by id."""
        return self.session.get(models.Question, question_id)

    def get_many(self, question_ids: List[int]) -> List[models.Question]:
        """Fetch questions by id, preserving the order of `question_ids`."""
        if not question_ids:
            return []
        stmt = select(models.Question).where(models.Question.id.in_(question_ids))
        by_id = {q.id: q for q in self.session.exec(stmt).all()}
        return [by_id[qid] for qid in question_ids if qid in by_id]


class OptionRepository:
    """Query helpers for `Option` records."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, option_id: int) -> Optional[models.Option]:
        """Fetch a single option by id."""
        return self.session.get(models.Option, option_id)

    def list_for_question(self, question_id: int) -> List[models.Option]:
        """List all option rows for the provided `question_id`."""
        stmt = select(models.Option).where(models.Option.question_id == question_id).order_by(models.Option.id)
        return self.session.exec(stmt).all()


class QuizSessionRepository:
    """Persist quiz sessions, their question lists and scored answers."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, quiz: models.QuizSession, question_ids: List[int]) -> models.QuizSession:
        """Store a `QuizSession` together with its ordered question ids."""
        self.session.add(quiz)
        self.session.commit()
        self.session.refresh(quiz)
        for position, qid in enumerate(question_ids):
            self.session.add(models.SessionQuestion(session_id=quiz.id, question_id=qid, position=position))
        self.session.commit()
        return quiz

    def get(self, session_id: str) -> Optional[models.QuizSession]:
        return self.session.get(models.QuizSession, session_id)

    def question_ids(self, session_id: str) -> List[int]:
        stmt = select(models.SessionQuestion.question_id).where(
            models.SessionQuestion.session_id == session_id
        ).order_by(models.SessionQuestion.position)
        return list(self.session.exec(stmt).all())

    def save(self, quiz: models.QuizSession) -> models.QuizSession:
        self.session.add(quiz)
        self.session.commit()
        self.session.refresh(quiz)
        return quiz


class QuizAnswerRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, answer: models.QuizAnswer) -> models.QuizAnswer:
        """Store a scored answer and add its points to the session in one commit.

        The score is incremented in SQL so concurrent submits cannot overwrite
        each other. A second answer for the same question raises ValueError.
        """
        self.session.add(answer)
        try:
            self.session.flush()
            self.session.execute(
                update(models.QuizSession)
                .where(models.QuizSession.id == answer.session_id)
                .values(raw_score=models.QuizSession.raw_score + answer.points_earned)
            )
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ValueError('question already answered')
        self.session.refresh(answer)
        return answer

    def list_for_session(self, session_id: str) -> List[models.QuizAnswer]:
        stmt = select(models.QuizAnswer).where(models.QuizAnswer.session_id == session_id).order_by(models.QuizAnswer.id)
        return self.session.exec(stmt).all()

    def find(self, session_id: str, question_id: int) -> Optional[models.QuizAnswer]:
        stmt = select(models.QuizAnswer).where(
            models.QuizAnswer.session_id == session_id,
            models.QuizAnswer.question_id == question_id
        )
        return self.session.exec(stmt).first()

    def recent_for_user(self, user_id: int, topic_id: Optional[int] = None, limit: int = 20) -> List[models.QuizAnswer]:
        """Return the user's most recent answers, newest first."""
        stmt = select(models.QuizAnswer).where(models.QuizAnswer.user_id == user_id)
        if topic_id is not None:
            stmt = stmt.where(models.QuizAnswer.topic_id == topic_id)
        stmt = stmt.order_by(models.QuizAnswer.id.desc()).limit(limit)
        return self.session.exec(stmt).all()

    def answer_timestamps(self, user_id: int) -> List:
        """Return the timestamps of all the user's answers, newest first."""
        stmt = select(models.QuizAnswer.answered_at).where(
            models.QuizAnswer.user_id == user_id
        ).order_by(models.QuizAnswer.answered_at.desc())
        return list(self.session.exec(stmt).all())
