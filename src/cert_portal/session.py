"""Quiz session state machine."""
import logging
import random
import time
from typing import Callable, Optional, Sequence

from cert_portal.models import Answer, Course, Question
from cert_portal.quiz import assemble

logger = logging.getLogger(__name__)

PASS_RATE = 0.8  # 80%

ACTIVE = "active"
COMPLETED = "completed"


class InvalidTransition(Exception):
    """A session operation was called in a state that does not allow it."""


class QuizSession:
    """One user's traversal of an assembled quiz.

    The session keeps its own copy of the pool; later changes to the course's
    questions only take effect on reset().
    """

    def __init__(
        self,
        pool: Sequence[Question],
        quiz_length: Optional[int] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        on_start: Optional[Callable[["QuizSession"], None]] = None,
        on_complete: Optional[Callable[["QuizSession"], None]] = None,
        course_id: Optional[str] = None,
    ):
        if not pool:
            raise ValueError("cannot start a quiz session over an empty pool")
        self.pool = list(pool)
        self.quiz_length = quiz_length
        self.rng = rng or random.Random()
        self.clock = clock
        self.on_start = on_start
        self.on_complete = on_complete
        self.course_id = course_id
        self._begin()

    def _begin(self) -> None:
        self.questions: list[Question] = assemble(self.pool, self.quiz_length, self.rng)
        self.index = 0
        self.answers: list[Answer] = []
        self.selected_option: Optional[int] = None
        self.state = ACTIVE
        self.score: Optional[int] = None
        self.started_at = self.clock()
        self.finished_at: Optional[float] = None
        self.persistence_error: Optional[str] = None
        if self.on_start is not None:
            self.on_start(self)

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if self.state != ACTIVE:
            return None
        return self.questions[self.index]

    @property
    def is_completed(self) -> bool:
        return self.state == COMPLETED

    @property
    def passed(self) -> bool:
        return self.is_completed and self.score / self.total >= PASS_RATE

    @property
    def has_answer(self) -> bool:
        return self.selected_option is not None

    def select_answer(self, option_index: int) -> bool:
        """Record the answer for the current question. Returns whether it was correct."""
        if self.state != ACTIVE:
            raise InvalidTransition("quiz is already completed")
        if self.has_answer:
            raise InvalidTransition(f"question {self.index + 1} has already been answered")
        question = self.questions[self.index]
        if not 0 <= option_index < len(question.options):
            raise InvalidTransition(f"option {option_index} does not exist")
        is_correct = option_index == question.correct_answer
        self.answers.append(Answer(question_id=question.id, is_correct=is_correct))
        self.selected_option = option_index
        return is_correct

    def advance(self) -> str:
        """Move past an answered question; completes the quiz after the last one."""
        if self.state != ACTIVE:
            raise InvalidTransition("quiz is already completed")
        if not self.has_answer:
            raise InvalidTransition(f"question {self.index + 1} has not been answered")
        self.selected_option = None
        if self.index + 1 < self.total:
            self.index += 1
            return self.state
        self.state = COMPLETED
        self.score = sum(1 for a in self.answers if a.is_correct)
        self.finished_at = self.clock()
        logger.info(
            "Quiz for course %s completed: %d/%d (%s)",
            self.course_id, self.score, self.total, "passed" if self.passed else "failed",
        )
        if self.on_complete is not None:
            self.on_complete(self)
        return self.state

    def reset(self) -> None:
        """Discard progress and start over with a freshly assembled quiz."""
        self._begin()

    def update_pool(self, pool: Sequence[Question]) -> None:
        """Replace the pool used by the next reset(). The running quiz is untouched."""
        if pool:
            self.pool = list(pool)

    def can_exit_without_confirmation(self) -> bool:
        return self.is_completed

    def elapsed_seconds(self) -> int:
        end = self.finished_at if self.finished_at is not None else self.clock()
        return max(0, round(end - self.started_at))

    def get_progress(self) -> dict:
        return {"index": self.index, "total": self.total, "score": self.score}


def start_session(
    course: Course,
    pool: Sequence[Question],
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.time,
    on_start: Optional[Callable[[QuizSession], None]] = None,
    on_complete: Optional[Callable[[QuizSession], None]] = None,
) -> Optional[QuizSession]:
    """Start a quiz over the course's pool, or return None if it has no questions."""
    if not pool:
        logger.info("Course %s has no questions yet", course.id)
        return None
    return QuizSession(
        pool,
        quiz_length=course.quiz_length or None,
        rng=rng,
        clock=clock,
        on_start=on_start,
        on_complete=on_complete,
        course_id=course.id,
    )
