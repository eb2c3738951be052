"""Per-student shuffling of question order and answer options."""

import random
from dataclasses import dataclass, field
from typing import List

from schemas import PresentedQuestion, Quiz

_system_rng = random.SystemRandom()


@dataclass
class PresentationTemplate:
    quiz_id: str
    question_order: List[int] = field(default_factory=list)
    # indexed by presentation position, not by original question index
    option_orders: List[List[int]] = field(default_factory=list)
    remapped_correct: List[int] = field(default_factory=list)
    questions: List[PresentedQuestion] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.question_order)


def permutation(size: int, rng) -> List[int]:
    order = list(range(size))
    if size > 1:
        rng.shuffle(order)
    return order


def shuffle_presentation(quiz: Quiz, rng=None) -> PresentationTemplate:
    """Shuffle ``quiz`` for one attempt.

    ``rng`` is anything with a ``shuffle(list)`` method; ``random.Random(seed)``
    in tests, a ``SystemRandom`` otherwise. The correct answer of every
    question is re-pointed at its position in the shuffled option list, so
    ``option_order[remapped_correct] == question.correct_index``.
    """
    rng = rng or _system_rng
    template = PresentationTemplate(quiz_id=quiz.quiz_id)
    template.question_order = permutation(len(quiz.questions), rng)
    for position, index in enumerate(template.question_order):
        question = quiz.questions[index]
        option_order = permutation(len(question.options), rng)
        template.option_orders.append(option_order)
        template.remapped_correct.append(option_order.index(question.correct_index))
        template.questions.append(PresentedQuestion(
            position=position,
            type=question.type,
            text=question.text,
            options=[question.options[i] for i in option_order],
        ))
    return template


def presented_questions(template: PresentationTemplate) -> List[PresentedQuestion]:
    return list(template.questions)
