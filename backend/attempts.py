"""Live student attempts held in process memory.

Each attempt owns one ``PresentationSession``; attempts share nothing but the
read-only quiz they were started from. An attempt that is abandoned simply
never produces a result and is dropped once it goes stale.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Dict, Optional, Tuple
from uuid import uuid4

import scoring
import settings
from database import Repository, get_repository
from errors import NotFound
from schemas import Quiz, Result
from scoring import PresentationSession

logger = logging.getLogger(__name__)

_registry = None


@dataclass
class _Attempt:
    session: PresentationSession
    touched: datetime
    lock: Lock = field(default_factory=Lock)


class AttemptRegistry:

    def __init__(
        self,
        repository: Repository,
        clock: Optional[Callable[[], datetime]] = None,
        rng=None,
        selection_policy: Optional[str] = None,
        retention_seconds: Optional[int] = None,
    ):
        self.repository = repository
        self.clock = clock or datetime.utcnow
        self.rng = rng
        self.selection_policy = selection_policy or settings.SELECTION_POLICY
        if retention_seconds is None:
            retention_seconds = settings.ATTEMPT_RETENTION_SECONDS
        self.retention = timedelta(seconds=retention_seconds)
        self._attempts: Dict[str, _Attempt] = {}
        self._lock = Lock()

    def __len__(self):
        return len(self._attempts)

    def start(self, quiz: Quiz, student_name: Optional[str], student_id: Optional[str]) -> Tuple[str, PresentationSession]:
        now = self.clock()
        session = scoring.start_session(
            quiz, student_name, student_id,
            rng=self.rng, now=now, selection_policy=self.selection_policy,
        )
        attempt_id = uuid4().hex
        with self._lock:
            self._purge(now)
            self._attempts[attempt_id] = _Attempt(session=session, touched=now)
        logger.info("attempt %s started on quiz %s by %s", attempt_id, quiz.quiz_id, session.student_id)
        if session.finished:
            self._save(attempt_id, session.result)
        return attempt_id, session

    def get(self, attempt_id: str) -> PresentationSession:
        attempt = self._lookup(attempt_id)
        with attempt.lock:
            self._tick(attempt_id, attempt)
        return attempt.session

    def select(self, attempt_id: str, option_index: Optional[int]) -> PresentationSession:
        attempt = self._lookup(attempt_id)
        with attempt.lock:
            self._tick(attempt_id, attempt)
            scoring.select(attempt.session, option_index)
        return attempt.session

    def advance(self, attempt_id: str) -> PresentationSession:
        attempt = self._lookup(attempt_id)
        with attempt.lock:
            self._tick(attempt_id, attempt)
            result = scoring.advance(attempt.session, now=attempt.touched)
            if result is not None:
                self._save(attempt_id, result)
        return attempt.session

    def tab_hidden(self, attempt_id: str) -> PresentationSession:
        attempt = self._lookup(attempt_id)
        with attempt.lock:
            self._tick(attempt_id, attempt)
            if not attempt.session.finished and not attempt.session.left_tab:
                logger.warning("attempt %s left the quiz page", attempt_id)
            scoring.on_tab_hidden(attempt.session)
        return attempt.session

    def result(self, attempt_id: str) -> Result:
        return scoring.current_result(self.get(attempt_id))

    def _lookup(self, attempt_id: str) -> _Attempt:
        attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise NotFound("Attempt not found")
        return attempt

    def _tick(self, attempt_id: str, attempt: _Attempt) -> None:
        attempt.touched = self.clock()
        result = scoring.expire_elapsed(attempt.session, attempt.touched)
        if result is not None:
            self._save(attempt_id, result)

    def _save(self, attempt_id: str, result: Result) -> None:
        if self.repository.load_quiz(result.quiz_id) is None:
            logger.warning("quiz %s was deleted during attempt %s; result dropped", result.quiz_id, attempt_id)
            return
        self.repository.save_result(result)
        logger.info(
            "attempt %s finished: %s scored %d/%d%s",
            attempt_id, result.student_id, result.score, result.total,
            f" ({result.note})" if result.note else "",
        )

    def _purge(self, now: datetime) -> None:
        stale = [key for key, attempt in self._attempts.items() if now - attempt.touched > self.retention]
        for key in stale:
            del self._attempts[key]
        if stale:
            logger.debug("dropped %d stale attempts", len(stale))


def get_attempts() -> AttemptRegistry:
    global _registry
    if _registry is None:
        _registry = AttemptRegistry(get_repository())
    return _registry
