"""Student attempt state machine.

A session moves ``AwaitingAnswer(0) -> AwaitingAnswer(1) -> ... -> Finished``.
Every transition takes the session explicitly and mutates it in place; none of
them touch storage. Reaching ``Finished`` produces the attempt's one and only
``Result``, which the caller is responsible for saving.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

import settings
from errors import InvalidAttempt, OutOfRange
from presentation import PresentationTemplate, shuffle_presentation
from schemas import LEFT_PLATFORM_NOTE, PresentedQuestion, Quiz, Result

logger = logging.getLogger(__name__)

LENIENT = "lenient"
STRICT = "strict"


@dataclass
class PresentationSession:
    template: PresentationTemplate
    student_name: str
    student_id: str
    seconds_per_question: int
    selection_policy: str = LENIENT
    current_position: int = 0
    selected_index: Optional[int] = None
    left_tab: bool = False
    correct: int = 0
    deadline: Optional[datetime] = None
    result: Optional[Result] = None

    @property
    def quiz_id(self) -> str:
        return self.template.quiz_id

    @property
    def question_order(self) -> List[int]:
        return self.template.question_order

    @property
    def option_orders(self) -> List[List[int]]:
        return self.template.option_orders

    @property
    def total(self) -> int:
        return self.template.total

    @property
    def finished(self) -> bool:
        return self.result is not None

    def current_question(self) -> Optional[PresentedQuestion]:
        if self.finished:
            return None
        return self.template.questions[self.current_position]


def start_session(
    quiz: Quiz,
    student_name: Optional[str],
    student_id: Optional[str],
    rng=None,
    now: Optional[datetime] = None,
    selection_policy: Optional[str] = None,
) -> PresentationSession:
    student_name = (student_name or "").strip()
    student_id = (student_id or "").strip()
    if not student_name or not student_id:
        raise InvalidAttempt("Student name and student id are required to start the quiz")
    selection_policy = selection_policy or settings.SELECTION_POLICY
    if selection_policy not in (LENIENT, STRICT):
        raise ValueError(f"unknown selection policy {selection_policy!r}")
    now = now or datetime.utcnow()
    session = PresentationSession(
        template=shuffle_presentation(quiz, rng),
        student_name=student_name,
        student_id=student_id,
        seconds_per_question=quiz.seconds_per_question,
        selection_policy=selection_policy,
    )
    if session.total == 0:
        _finish(session, now)
    else:
        session.deadline = now + timedelta(seconds=session.seconds_per_question)
    return session


def select(session: PresentationSession, option_index: Optional[int]) -> PresentationSession:
    """Record the student's choice for the current question; last one wins."""
    if session.finished:
        return session
    if option_index is not None:
        option_count = len(session.option_orders[session.current_position])
        if not 0 <= option_index < option_count and session.selection_policy == STRICT:
            raise OutOfRange(f"Option {option_index} does not exist for this question")
    session.selected_index = option_index
    return session


def advance(session: PresentationSession, now: Optional[datetime] = None) -> Optional[Result]:
    if session.finished:
        return None
    now = now or datetime.utcnow()
    position = session.current_position
    if session.selected_index is not None and session.selected_index == session.template.remapped_correct[position]:
        session.correct += 1
    session.selected_index = None
    if position + 1 < session.total:
        session.current_position = position + 1
        session.deadline = now + timedelta(seconds=session.seconds_per_question)
        return None
    return _finish(session, now)


def expire_elapsed(session: PresentationSession, now: Optional[datetime] = None) -> Optional[Result]:
    """Fire the per-question timer for every deadline that has passed by ``now``."""
    now = now or datetime.utcnow()
    emitted = None
    while not session.finished and session.deadline is not None and now >= session.deadline:
        emitted = advance(session, now=session.deadline)
    return emitted


def on_tab_hidden(session: PresentationSession) -> PresentationSession:
    session.left_tab = True
    return session


def current_result(session: PresentationSession) -> Result:
    if session.result is None:
        raise InvalidAttempt("The attempt is not finished yet")
    return session.result


def _finish(session: PresentationSession, now: datetime) -> Result:
    session.deadline = None
    session.result = Result(
        quiz_id=session.quiz_id,
        student_name=session.student_name,
        student_id=session.student_id,
        score=session.correct,
        total=session.total,
        timestamp=now,
        note=LEFT_PLATFORM_NOTE if session.left_tab else "",
    )
    logger.debug("attempt on %s finished: %d/%d", session.quiz_id, session.correct, session.total)
    return session.result
