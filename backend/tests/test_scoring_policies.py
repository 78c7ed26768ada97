import pytest

from quizapp.scoring import (
    AdaptiveDifficultyScoring,
    ComboStreakScoring,
    CompositeScoring,
    ConfidenceBasedScoring,
    NegativePenaltyScoring,
    PartialCreditScoring,
    PerformanceMetrics,
    QuestionOption,
    QuizQuestion,
    ScoringContext,
    StandardScoring,
    SubmittedAnswer,
    ThresholdScoring,
    TimeBasedScoring,
    clamp_difficulty,
    effective_confidence,
)

QUESTION = QuizQuestion(
    id="q1",
    points=10,
    difficulty_level=3,
    options=(
        QuestionOption(id="A", is_correct=True),
        QuestionOption(id="B", partial_credit_percentage=40),
        QuestionOption(id="C"),
    ),
)


def ctx(option="A", confidence=None, time_spent=None, performance=None, question=QUESTION, locale="en"):
    opt = next((o for o in question.options if o.id == option), None)
    answer = SubmittedAnswer(
        question_id=question.id,
        selected_option_id=option,
        is_correct=bool(opt and opt.is_correct),
        confidence_level=confidence,
        time_spent=time_spent,
    )
    return ScoringContext(question=question, answer=answer, performance=performance, locale=locale)


@pytest.mark.parametrize("policy", [
    StandardScoring(),
    NegativePenaltyScoring(),
    PartialCreditScoring(),
    ConfidenceBasedScoring(),
    ThresholdScoring(),
    AdaptiveDifficultyScoring(),
    ComboStreakScoring(),
])
def test_correct_without_modifiers_earns_full_points(policy):
    # medium confidence, level-1 question, no streak: nothing should scale the points
    question = QuizQuestion(id="q", points=10, difficulty_level=1, options=QUESTION.options)
    result = policy.score(ctx(question=question, performance=PerformanceMetrics(recent_accuracy=75)))
    assert result.points_earned == pytest.approx(10)
    assert result.percentage == pytest.approx(100)


def test_standard_incorrect():
    result = StandardScoring().score(ctx("C"))
    assert result.points_earned == 0
    assert result.points_possible == 10
    assert result.percentage == 0
    assert result.applied_modifiers == ["standard"]
    assert result.feedback == "Incorrect answer. Try again."


@pytest.mark.parametrize("penalty", [10, 25, 50])
def test_negative_penalty_incorrect(penalty):
    result = NegativePenaltyScoring(penalty).score(ctx("C"))
    assert result.points_earned == -(10 * penalty / 100)
    assert result.percentage == -penalty
    assert result.applied_modifiers == ["negative_penalty", f"{penalty}%"]
    assert result.feedback.startswith("Incorrect. Lost")


def test_partial_credit_distractor():
    result = PartialCreditScoring().score(ctx("B"))
    assert result.points_earned == pytest.approx(4)
    assert result.percentage == 40
    assert result.applied_modifiers == ["partial_credit", "40%"]
    assert "40%" in result.feedback


def test_partial_credit_zero_option():
    result = PartialCreditScoring().score(ctx("C"))
    assert result.points_earned == 0
    assert result.percentage == 0


def test_partial_credit_unknown_option_is_no_answer():
    result = PartialCreditScoring().score(ctx("Z"))
    assert result.points_earned == 0
    assert result.percentage == 0
    assert result.applied_modifiers == []
    assert result.feedback == "No answer selected."


def test_confidence_high_correct_doubles_points_and_possible():
    result = ConfidenceBasedScoring().score(ctx("A", confidence=5))
    assert result.points_earned == 20
    assert result.points_possible == 20
    assert result.percentage == 100
    assert "high_confidence_bonus_2x" in result.applied_modifiers


def test_confidence_low_correct_is_unscaled():
    result = ConfidenceBasedScoring().score(ctx("A", confidence=1))
    assert result.points_earned == 10
    assert result.points_possible == 10


def test_confidence_high_incorrect_doubles_penalty():
    result = ConfidenceBasedScoring().score(ctx("C", confidence=4))
    assert result.points_earned == pytest.approx(-5)
    assert result.points_possible == 10
    assert result.percentage == pytest.approx(-50)


def test_confidence_low_incorrect_halves_penalty():
    result = ConfidenceBasedScoring().score(ctx("C", confidence=2))
    assert result.points_earned == pytest.approx(-1.25)
    assert result.applied_modifiers[-1] == "low_confidence_reduced_penalty_0.5x"


def test_confidence_percentage_is_clamped():
    result = ConfidenceBasedScoring(base_penalty_percentage=80).score(ctx("C", confidence=5))
    assert result.points_earned == pytest.approx(-16)
    assert result.percentage == -100


def test_confidence_defaults_and_clamps():
    answer = SubmittedAnswer(question_id="q", selected_option_id="A", is_correct=True)
    assert effective_confidence(answer) == 3
    assert effective_confidence(SubmittedAnswer("q", "A", True, confidence_level=9)) == 5
    assert effective_confidence(SubmittedAnswer("q", "A", True, confidence_level=0)) == 1


def test_threshold_zeroes_results_below_minimum():
    result = ThresholdScoring(40, PartialCreditScoring()).score(ctx("B"))
    assert result.points_earned == 4

    result = ThresholdScoring(50, PartialCreditScoring()).score(ctx("B"))
    assert result.points_earned == 0
    assert result.percentage == 0
    assert result.applied_modifiers[-1] == "threshold_50%"
    assert "Below minimum threshold" in result.feedback


def test_threshold_passes_through():
    result = ThresholdScoring().score(ctx("A"))
    assert result.points_earned == 10
    assert result.applied_modifiers == ["standard", "threshold_passed"]


def test_time_based_full_bonus_at_zero_seconds():
    result = TimeBasedScoring().score(ctx("A", time_spent=0))
    assert result.points_earned == pytest.approx(15)
    assert result.points_possible == pytest.approx(15)
    assert result.percentage == pytest.approx(150)
    assert "speed_bonus_50%" in result.applied_modifiers


def test_time_based_no_bonus_when_slow_or_missing():
    for t in (60, 120, None):
        result = TimeBasedScoring().score(ctx("A", time_spent=t))
        assert result.points_earned == 10
        assert result.points_possible == pytest.approx(15)


def test_time_based_linear_bonus():
    result = TimeBasedScoring().score(ctx("A", time_spent=35))
    # halfway between 10s and 60s -> half of the 50% bonus
    assert result.points_earned == pytest.approx(12.5)
    assert "speed_bonus_25%" in result.applied_modifiers


def test_time_based_incorrect_never_earns_bonus():
    result = TimeBasedScoring().score(ctx("C", time_spent=1))
    assert result.points_earned == 0
    assert result.points_possible == pytest.approx(15)


def test_adaptive_difficulty_hard_question_for_strong_user():
    question = QuizQuestion(id="q", points=10, difficulty_level=5, options=QUESTION.options)
    result = AdaptiveDifficultyScoring().score(
        ctx(question=question, performance=PerformanceMetrics(recent_accuracy=95))
    )
    assert result.points_earned == pytest.approx(18)
    assert result.points_possible == pytest.approx(20)
    assert result.percentage == 100
    assert result.applied_modifiers == ["adaptive_difficulty", "difficulty_2.00x", "performance_0.90x"]


def test_adaptive_difficulty_compensates_strugglers():
    result = AdaptiveDifficultyScoring().score(ctx(performance=PerformanceMetrics(recent_accuracy=40)))
    assert result.points_earned == pytest.approx(10 * 1.5 * 1.2)


def test_adaptive_difficulty_clamps_malformed_level():
    question = QuizQuestion(id="q", points=10, difficulty_level=9, options=QUESTION.options)
    result = AdaptiveDifficultyScoring().score(ctx(question=question))
    assert result.points_earned == pytest.approx(20)
    assert clamp_difficulty(-3) == 1
    assert clamp_difficulty("x") == 1


def test_adaptive_difficulty_incorrect_is_zero_percent():
    result = AdaptiveDifficultyScoring().score(ctx("C"))
    assert result.points_earned == 0
    assert result.percentage == 0


def test_combo_streak_clamps_multiplier():
    result = ComboStreakScoring().score(ctx(performance=PerformanceMetrics(consecutive_correct=10)))
    assert result.points_earned == pytest.approx(20)
    assert result.points_possible == pytest.approx(20)
    assert "streak_10" in result.applied_modifiers
    assert "Combo x11" in result.feedback


def test_combo_streak_partial_and_broken():
    result = ComboStreakScoring().score(ctx(performance=PerformanceMetrics(consecutive_correct=3)))
    assert result.points_earned == pytest.approx(13)

    broken = ComboStreakScoring().score(ctx("C", performance=PerformanceMetrics(consecutive_correct=3)))
    assert broken.points_earned == 0
    assert broken.points_possible == pytest.approx(13)
    assert "Combo broken" in broken.feedback


def test_composite_of_standard_matches_standard():
    context = ctx("A")
    assert CompositeScoring([StandardScoring()]).score(context) == StandardScoring().score(context)


def test_composite_confidence_and_time_scenario():
    result = CompositeScoring([ConfidenceBasedScoring(), TimeBasedScoring()]).score(
        ctx("B", confidence=5, time_spent=5)
    )
    assert result.points_earned == pytest.approx(-5)
    assert result.points_possible == pytest.approx(25)
    assert result.percentage == pytest.approx(-20)
    assert result.applied_modifiers == ["confidence_based", "high_confidence_penalty_2x", "time_based"]
    assert " | " in result.feedback


def test_composite_with_nothing_possible_reports_zero():
    result = CompositeScoring([]).score(ctx("A"))
    assert result.points_possible == 0
    assert result.percentage == 0


def test_scoring_is_repeatable():
    policy = CompositeScoring([ConfidenceBasedScoring(), TimeBasedScoring(), ComboStreakScoring()])
    context = ctx("A", confidence=4, time_spent=20, performance=PerformanceMetrics(consecutive_correct=2))
    assert policy.score(context) == policy.score(context)


def test_feedback_locale():
    assert StandardScoring().score(ctx("A", locale="tl")).feedback == "Tama! Nakakuha ka ng 10.0 puntos."
    # unknown locales fall back to English
    assert StandardScoring().score(ctx("A", locale="xx")).feedback == "Correct! You earned 10.0 points."


def test_question_is_not_mutated():
    ConfidenceBasedScoring().score(ctx("A", confidence=5))
    AdaptiveDifficultyScoring().score(ctx("A"))
    assert QUESTION.points == 10
    assert QUESTION.difficulty_level == 3
