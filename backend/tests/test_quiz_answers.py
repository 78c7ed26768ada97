import pytest
from sqlmodel import Session

from quizapp import models, repositories
from quizapp.database import create_db_and_tables, engine
from quizapp.services import QuizService


def _running_quiz(db, name, count=2):
    user = models.User(username=name, password_hash='x')
    topic = models.Topic(name=f'{name}-topic')
    db.add(user)
    db.add(topic)
    db.commit()
    questions = repositories.QuestionRepository(db)
    created = [
        questions.create(
            models.Question(topic_id=topic.id, question_text=f'{name} {i}?', points=10),
            [models.Option(option_text='Right', is_correct=True), models.Option(option_text='Wrong')],
        )
        for i in range(count)
    ]
    quiz = repositories.QuizSessionRepository(db).create(
        models.QuizSession(user_id=user.id, topic_id=topic.id, total_questions=count, max_possible_score=10.0 * count),
        [q.id for q in created],
    )
    right = {q.id: repositories.OptionRepository(db).list_for_question(q.id)[0].id for q in created}
    return user.id, quiz.id, right


def test_second_answer_row_for_question_is_rejected():
    create_db_and_tables()
    with Session(engine) as db:
        user_id, session_id, right = _running_quiz(db, 'double-submit', count=1)
        question_id, option_id = next(iter(right.items()))
        answers = repositories.QuizAnswerRepository(db)

        def _row():
            return models.QuizAnswer(session_id=session_id, user_id=user_id, topic_id=db.get(models.QuizSession, session_id).topic_id,
                                     question_id=question_id, option_id=option_id, is_correct=True, points_earned=10.0)

        answers.add(_row())
        with pytest.raises(ValueError, match='already answered'):
            answers.add(_row())
        assert len(answers.list_for_session(session_id)) == 1
        assert db.get(models.QuizSession, session_id).raw_score == 10.0


def test_score_from_stale_session_copy_is_not_lost():
    create_db_and_tables()
    with Session(engine) as setup:
        user_id, session_id, right = _running_quiz(setup, 'stale-copy')
    (q1, o1), (q2, o2) = right.items()

    with Session(engine) as first, Session(engine) as second:
        # both workers hold the session row with raw_score 0 before either submits
        assert first.get(models.QuizSession, session_id).raw_score == 0
        assert second.get(models.QuizSession, session_id).raw_score == 0
        QuizService(first).submit_answer(user_id, session_id, q1, o1)
        result = QuizService(second).submit_answer(user_id, session_id, q2, o2)

    assert result['current_score'] == 100
    with Session(engine) as check:
        assert check.get(models.QuizSession, session_id).raw_score == 20.0
