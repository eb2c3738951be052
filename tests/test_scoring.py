import random
from datetime import timedelta

import pytest

import scoring
from conftest import T0, ScriptedShuffle, make_quiz
from errors import InvalidAttempt, OutOfRange
from schemas import Question


def _start(quiz, rng=None, policy="lenient", name="Salma", sid="2023-118"):
    return scoring.start_session(quiz, name, sid, rng=rng or random.Random(11), now=T0, selection_policy=policy)


def _one_question_session(policy="lenient"):
    quiz = make_quiz(questions=[Question(text="pick c", options=["a", "b", "c", "d"], correct_index=2)])
    return _start(quiz, rng=ScriptedShuffle([2, 0, 3, 1]), policy=policy)


def _answer_all_correctly(session):
    while not session.finished:
        scoring.select(session, session.template.remapped_correct[session.current_position])
        result = scoring.advance(session, now=T0)
    return result


def test_correct_pick_scores_and_finishes():
    session = _one_question_session()

    scoring.select(session, 0)
    result = scoring.advance(session, now=T0 + timedelta(seconds=5))

    assert session.finished
    assert (result.score, result.total, result.note) == (1, 1, "")
    assert result.student_name == "Salma"
    assert result.student_id == "2023-118"
    assert result.timestamp == T0 + timedelta(seconds=5)


def test_leaving_tab_is_noted_on_result(quiz):
    session = _start(quiz)
    scoring.on_tab_hidden(session)

    result = _answer_all_correctly(session)

    assert result.note == "left platform"
    assert result.score == result.total == 3


def test_empty_quiz_finishes_at_start():
    session = _start(make_quiz(questions=[]))

    assert session.finished
    assert session.deadline is None
    result = scoring.current_result(session)
    assert (result.score, result.total) == (0, 0)


def test_last_selection_wins():
    session = _one_question_session()
    scoring.select(session, 0)
    scoring.select(session, 3)

    assert scoring.advance(session, now=T0).score == 0


def test_no_selection_counts_as_wrong():
    session = _one_question_session()
    assert scoring.advance(session, now=T0).score == 0


def test_advance_after_finish_has_no_effect(quiz):
    session = _start(quiz)
    result = _answer_all_correctly(session)

    assert scoring.advance(session, now=T0 + timedelta(minutes=5)) is None
    assert scoring.select(session, 0).selected_index is None
    assert scoring.current_result(session) is result


def test_lenient_out_of_range_is_scored_wrong():
    session = _one_question_session(policy="lenient")
    scoring.select(session, 17)
    assert session.selected_index == 17
    assert scoring.advance(session, now=T0).score == 0


def test_strict_out_of_range_is_rejected():
    session = _one_question_session(policy="strict")
    scoring.select(session, 0)

    with pytest.raises(OutOfRange):
        scoring.select(session, -1)

    assert session.selected_index == 0
    assert scoring.advance(session, now=T0).score == 1


@pytest.mark.parametrize("name,sid", [("", "1"), ("Omar", ""), (None, "1"), ("  ", "1"), ("Omar", None)])
def test_missing_identity_is_rejected(quiz, name, sid):
    with pytest.raises(InvalidAttempt):
        scoring.start_session(quiz, name, sid, now=T0)


def test_result_is_unavailable_until_finished(quiz):
    session = _start(quiz)
    with pytest.raises(InvalidAttempt):
        scoring.current_result(session)


def test_advance_moves_to_next_question_and_resets_timer(quiz):
    session = _start(quiz)
    assert session.deadline == T0 + timedelta(seconds=30)
    scoring.select(session, 0)

    later = T0 + timedelta(seconds=12)
    assert scoring.advance(session, now=later) is None
    assert session.current_position == 1
    assert session.selected_index is None
    assert session.deadline == later + timedelta(seconds=30)


def test_timer_expiry_scores_each_elapsed_question(quiz):
    session = _start(quiz)
    scoring.select(session, session.template.remapped_correct[0])

    assert scoring.expire_elapsed(session, T0 + timedelta(seconds=65)) is None
    assert session.current_position == 2
    assert session.correct == 1
    assert session.deadline == T0 + timedelta(seconds=90)


def test_timer_fires_exactly_at_deadline(quiz):
    session = _start(quiz)
    scoring.expire_elapsed(session, T0 + timedelta(seconds=29))
    assert session.current_position == 0
    scoring.expire_elapsed(session, T0 + timedelta(seconds=30))
    assert session.current_position == 1


def test_timer_expiry_finishes_attempt_once(quiz):
    session = _start(quiz)

    result = scoring.expire_elapsed(session, T0 + timedelta(hours=1))

    assert result is not None
    assert (result.score, result.total) == (0, 3)
    assert result.timestamp == T0 + timedelta(seconds=90)
    assert scoring.expire_elapsed(session, T0 + timedelta(hours=2)) is None


def test_tab_flag_never_resets(quiz):
    session = _start(quiz)
    scoring.on_tab_hidden(session)
    scoring.select(session, 0)
    scoring.advance(session, now=T0)
    scoring.on_tab_hidden(session)
    assert session.left_tab is True


@pytest.mark.parametrize("seed", range(10))
def test_score_stays_within_total(seed):
    rng = random.Random(seed)
    quiz = make_quiz(questions=[
        Question(text=f"q{n}", options=["a", "b", "c", "d"], correct_index=rng.randrange(4))
        for n in range(rng.randrange(1, 8))
    ])
    session = _start(quiz, rng=rng)
    result = None
    while not session.finished:
        scoring.select(session, rng.choice([None, -3, 0, 1, 2, 3, 9]))
        result = scoring.advance(session, now=T0)

    assert 0 <= result.score <= result.total == len(quiz.questions)


def test_unknown_policy_is_rejected_at_start(quiz):
    with pytest.raises(ValueError):
        _start(quiz, policy="strickt")
