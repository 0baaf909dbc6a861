"""Quiz assembly: random question selection and option shuffling."""
import random
from dataclasses import replace
from typing import Optional, Sequence, TypeVar

from cert_portal.models import Question

T = TypeVar("T")


def shuffle_array(items: Sequence[T], rng: Optional[random.Random] = None) -> list[T]:
    """Return a Fisher-Yates shuffled copy of items."""
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def shuffle_options(question: Question, rng: Optional[random.Random] = None) -> Question:
    """Copy of question with shuffled options and the correct index moved along."""
    correct_text = question.correct_text
    options = shuffle_array(question.options, rng)
    return replace(question, options=options, correct_answer=options.index(correct_text))


def assemble(
    pool: Sequence[Question], quiz_length: Optional[int] = None, rng: Optional[random.Random] = None,
) -> list[Question]:
    """Pick up to quiz_length questions from pool, each with shuffled options.

    quiz_length of None takes the whole pool. An empty pool gives an empty quiz.
    """
    if quiz_length is not None and quiz_length < 1:
        raise ValueError(f"quiz_length must be at least 1, got {quiz_length}")
    selected = shuffle_array(pool, rng)
    if quiz_length is not None:
        selected = selected[:quiz_length]
    return [shuffle_options(q, rng) for q in selected]
