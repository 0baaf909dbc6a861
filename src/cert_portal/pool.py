"""Course and question pool access, with live pool subscriptions."""
import logging
import sqlite3
import threading
from typing import Callable, Optional

from cert_portal.db import get_connection
from cert_portal.models import Course, OPTION_COLUMNS, Question

logger = logging.getLogger(__name__)

POOL_QUERY = "SELECT * FROM questions WHERE course_id = ? ORDER BY id"


def get_course(db_path: str, course_id: str) -> Optional[Course]:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
    conn.close()
    return Course.from_row(row) if row else None


def list_courses(db_path: str) -> list[Course]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM courses ORDER BY title").fetchall()
    conn.close()
    return [Course.from_row(r) for r in rows]


def add_course(db_path: str, course_id: str, title: str, quiz_length: Optional[int] = None) -> Course:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO courses (id, title, quiz_length) VALUES (?, ?, ?)",
        (course_id, title, quiz_length),
    )
    conn.commit()
    conn.close()
    return Course(id=course_id, title=title, quiz_length=quiz_length)


def add_question(db_path: str, course_id: str, text: str, options: list[str], correct_answer: int) -> int:
    """Insert a question into a course's pool. Returns the new question id."""
    if len(options) != len(OPTION_COLUMNS):
        raise ValueError(f"a question needs exactly {len(OPTION_COLUMNS)} options")
    if not 0 <= correct_answer < len(options):
        raise ValueError(f"correct_answer out of range: {correct_answer}")
    conn = get_connection(db_path)
    cursor = conn.execute(
        f"INSERT INTO questions (course_id, text, {', '.join(OPTION_COLUMNS)}, correct_answer) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (course_id, text, *options, correct_answer),
    )
    conn.commit()
    question_id = cursor.lastrowid
    conn.close()
    return question_id


def _read_pool(conn: sqlite3.Connection, course_id: str) -> list[Question]:
    return [Question.from_row(r) for r in conn.execute(POOL_QUERY, (course_id,)).fetchall()]


def load_pool(db_path: str, course_id: str) -> list[Question]:
    """All questions belonging to a course."""
    conn = get_connection(db_path)
    pool = _read_pool(conn, course_id)
    conn.close()
    return pool


class QuestionPoolSubscription:
    """Live view of a course's question pool.

    The callback receives the full pool once on start() and again each time
    a committed change alters it. Changes are detected by polling SQLite's
    data_version on a dedicated connection.
    """

    def __init__(
        self,
        db_path: str,
        course_id: str,
        on_change: Callable[[list[Question]], None],
        interval: float = 1.0,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.db_path = db_path
        self.course_id = course_id
        self.on_change = on_change
        self.on_error = on_error
        self.interval = interval
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._data_version: Optional[int] = None
        self._last_pool: Optional[list[Question]] = None

    @property
    def active(self) -> bool:
        return self._conn is not None

    def start(self) -> "QuestionPoolSubscription":
        if self.active:
            return self
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._stop.clear()
        self._data_version = None
        self._last_pool = None
        self.check()
        self._thread = threading.Thread(
            target=self._run, name=f"pool-{self.course_id}", daemon=True,
        )
        self._thread.start()
        logger.debug("Subscribed to question pool of course %s", self.course_id)
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        logger.debug("Unsubscribed from question pool of course %s", self.course_id)

    def check(self) -> bool:
        """Reload the pool if the database changed. Returns True if the callback fired."""
        with self._lock:
            if self._conn is None:
                return False
            version = self._conn.execute("PRAGMA data_version").fetchone()[0]
            if version == self._data_version:
                return False
            self._data_version = version
            pool = _read_pool(self._conn, self.course_id)
            if pool == self._last_pool:
                return False
            self._last_pool = pool
        self.on_change(list(pool))
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.check()
            except sqlite3.Error as e:
                logger.error("Error polling questions for course %s: %s", self.course_id, e)
                if self.on_error is not None:
                    self.on_error(e)
            except Exception:
                logger.exception("Pool listener for course %s failed", self.course_id)

    def __enter__(self) -> "QuestionPoolSubscription":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()


def subscribe_pool(
    db_path: str,
    course_id: str,
    on_change: Callable[[list[Question]], None],
    interval: float = 1.0,
) -> QuestionPoolSubscription:
    """Start a live subscription to a course's question pool."""
    return QuestionPoolSubscription(db_path, course_id, on_change, interval=interval).start()
