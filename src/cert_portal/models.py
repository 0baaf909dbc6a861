"""Data classes for the portal domain model."""
import json
from dataclasses import dataclass, field
from typing import Optional

NOT_STARTED = "not-started"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
FAILED = "failed"

COURSE_STATUSES = (NOT_STARTED, IN_PROGRESS, COMPLETED, FAILED)

OPTION_COLUMNS = ("option_a", "option_b", "option_c", "option_d")


@dataclass
class Question:
    id: int
    text: str
    options: list[str]
    correct_answer: int
    course_id: Optional[str] = None

    @property
    def correct_text(self) -> str:
        return self.options[self.correct_answer]

    @classmethod
    def from_row(cls, row) -> "Question":
        return cls(
            id=row["id"],
            text=row["text"],
            options=[row[col] for col in OPTION_COLUMNS],
            correct_answer=row["correct_answer"],
            course_id=row["course_id"],
        )


@dataclass
class Answer:
    question_id: int
    is_correct: bool


@dataclass
class Course:
    id: str
    title: str
    quiz_length: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> "Course":
        return cls(id=row["id"], title=row["title"], quiz_length=row["quiz_length"])


@dataclass
class Track:
    id: str
    name: str
    required_courses: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row) -> "Track":
        return cls(
            id=row["id"],
            name=row["name"],
            required_courses=json.loads(row["required_courses"] or "[]"),
        )


@dataclass
class User:
    id: str
    name: str
    email: str = ""
    is_admin: bool = False
    track_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"] or "",
            is_admin=bool(row["is_admin"]),
            track_ids=json.loads(row["track_ids"] or "[]"),
        )


@dataclass
class UserCourseRecord:
    user_id: str
    course_id: str
    status: str = NOT_STARTED
    due_date: Optional[str] = None
    completed_date: Optional[str] = None
    attempt_count: int = 0
    fail_count: int = 0

    @classmethod
    def from_row(cls, row) -> "UserCourseRecord":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass
class ActivityLog:
    user_id: str
    logins: int = 0
    last_login: Optional[str] = None
    total_training_time: int = 0
    attempts: int = 0
    passes: int = 0
    fails: int = 0
    pass_rate: int = 0

    @classmethod
    def from_row(cls, row) -> "ActivityLog":
        return cls(**{k: row[k] for k in row.keys()})
