import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, MongoClient

import settings
from schemas import AdminCredentials, ContactMessage, PendingSignup, Quiz, Result, Teacher

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
_db = None
_repository = None


def get_db():
    global _client, _db
    if _db is None:
        _client = MongoClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
    return _db


class Repository(ABC):
    """Storage for quizzes, results and the accounts around them."""

    @abstractmethod
    def load_quiz(self, quiz_id: str) -> Optional[Quiz]: ...

    @abstractmethod
    def list_quizzes(self, created_by: Optional[str] = None) -> List[Quiz]: ...

    @abstractmethod
    def save_quiz(self, quiz: Quiz) -> None: ...

    @abstractmethod
    def delete_quiz(self, quiz_id: str) -> bool:
        """Delete a quiz together with its results."""

    @abstractmethod
    def save_result(self, result: Result) -> None: ...

    @abstractmethod
    def list_results(self, quiz_id: str) -> List[Result]:
        """Results of one quiz, oldest first."""

    @abstractmethod
    def get_teacher(self, email: str) -> Optional[Teacher]: ...

    @abstractmethod
    def save_teacher(self, teacher: Teacher) -> None: ...

    @abstractmethod
    def list_teachers(self) -> List[Teacher]: ...

    @abstractmethod
    def add_pending(self, pending: PendingSignup) -> bool:
        """Queue a signup; False when the email is already waiting."""

    @abstractmethod
    def list_pending(self) -> List[PendingSignup]: ...

    @abstractmethod
    def pop_pending(self, email: str) -> Optional[PendingSignup]: ...

    @abstractmethod
    def get_admin(self) -> Optional[AdminCredentials]: ...

    @abstractmethod
    def save_admin(self, admin: AdminCredentials) -> None: ...

    @abstractmethod
    def add_message(self, message: ContactMessage) -> None: ...

    @abstractmethod
    def list_messages(self) -> List[ContactMessage]: ...


class MongoRepository(Repository):

    def __init__(self, db):
        self.db = db

    def _find(self, collection_name: str, filter_dict: Dict[str, Any] | None = None,
              sort: Optional[str] = None) -> List[Dict[str, Any]]:
        cursor = self.db[collection_name].find(filter_dict or {}, {"_id": 0})
        if sort:
            cursor = cursor.sort(sort, ASCENDING)
        return list(cursor)

    def load_quiz(self, quiz_id):
        doc = self.db["quiz"].find_one({"quiz_id": quiz_id}, {"_id": 0})
        return Quiz(**doc) if doc else None

    def list_quizzes(self, created_by=None):
        filter_dict = {"created_by": created_by} if created_by else {}
        return [Quiz(**doc) for doc in self._find("quiz", filter_dict, sort="created_at")]

    def save_quiz(self, quiz):
        self.db["quiz"].replace_one({"quiz_id": quiz.quiz_id}, quiz.model_dump(), upsert=True)

    def delete_quiz(self, quiz_id):
        deleted = self.db["quiz"].delete_one({"quiz_id": quiz_id}).deleted_count
        self.db["result"].delete_many({"quiz_id": quiz_id})
        return deleted > 0

    def save_result(self, result):
        self.db["result"].insert_one(result.model_dump())

    def list_results(self, quiz_id):
        return [Result(**doc) for doc in self._find("result", {"quiz_id": quiz_id}, sort="timestamp")]

    def get_teacher(self, email):
        doc = self.db["user"].find_one({"email": email.strip().lower()}, {"_id": 0})
        return Teacher(**doc) if doc else None

    def save_teacher(self, teacher):
        self.db["user"].replace_one({"email": teacher.email}, teacher.model_dump(), upsert=True)

    def list_teachers(self):
        return [Teacher(**doc) for doc in self._find("user")]

    def add_pending(self, pending):
        if self.db["pending"].find_one({"email": pending.email}):
            return False
        self.db["pending"].insert_one(pending.model_dump())
        return True

    def list_pending(self):
        return [PendingSignup(**doc) for doc in self._find("pending", sort="timestamp")]

    def pop_pending(self, email):
        doc = self.db["pending"].find_one_and_delete({"email": email.strip().lower()}, {"_id": 0})
        return PendingSignup(**doc) if doc else None

    def get_admin(self):
        doc = self.db["admin"].find_one({}, {"_id": 0})
        return AdminCredentials(**doc) if doc else None

    def save_admin(self, admin):
        self.db["admin"].replace_one({}, admin.model_dump(), upsert=True)

    def add_message(self, message):
        self.db["inbox"].insert_one(message.model_dump())

    def list_messages(self):
        return [ContactMessage(**doc) for doc in self._find("inbox", sort="timestamp")]


class MemoryRepository(Repository):
    """Process-local store; handy for development and tests."""

    def __init__(self):
        self._lock = Lock()
        self.quizzes: Dict[str, Quiz] = {}
        self.results: Dict[str, List[Result]] = {}
        self.users: Dict[str, Teacher] = {}
        self.pending: List[PendingSignup] = []
        self.admin: Optional[AdminCredentials] = None
        self.inbox: List[ContactMessage] = []

    def load_quiz(self, quiz_id):
        quiz = self.quizzes.get(quiz_id)
        return quiz.model_copy(deep=True) if quiz else None

    def list_quizzes(self, created_by=None):
        quizzes = [q for q in self.quizzes.values() if not created_by or q.created_by == created_by]
        return sorted((q.model_copy(deep=True) for q in quizzes), key=lambda q: q.created_at)

    def save_quiz(self, quiz):
        with self._lock:
            self.quizzes[quiz.quiz_id] = quiz.model_copy(deep=True)

    def delete_quiz(self, quiz_id):
        with self._lock:
            self.results.pop(quiz_id, None)
            return self.quizzes.pop(quiz_id, None) is not None

    def save_result(self, result):
        with self._lock:
            self.results.setdefault(result.quiz_id, []).append(result)

    def list_results(self, quiz_id):
        return sorted(self.results.get(quiz_id, []), key=lambda r: r.timestamp)

    def get_teacher(self, email):
        teacher = self.users.get(email.strip().lower())
        return teacher.model_copy() if teacher else None

    def save_teacher(self, teacher):
        with self._lock:
            self.users[teacher.email] = teacher.model_copy()

    def list_teachers(self):
        return [t.model_copy() for t in self.users.values()]

    def add_pending(self, pending):
        with self._lock:
            if any(p.email == pending.email for p in self.pending):
                return False
            self.pending.append(pending.model_copy())
            return True

    def list_pending(self):
        return [p.model_copy() for p in self.pending]

    def pop_pending(self, email):
        email = email.strip().lower()
        with self._lock:
            for i, p in enumerate(self.pending):
                if p.email == email:
                    return self.pending.pop(i)
        return None

    def get_admin(self):
        return self.admin.model_copy() if self.admin else None

    def save_admin(self, admin):
        self.admin = admin.model_copy()

    def add_message(self, message):
        with self._lock:
            self.inbox.append(message.model_copy())

    def list_messages(self):
        return list(self.inbox)


def get_repository() -> Repository:
    global _repository
    if _repository is None:
        if settings.DATABASE_URL.startswith("memory://"):
            logger.warning("using in-memory storage; data is lost on restart")
            _repository = MemoryRepository()
        else:
            _repository = MongoRepository(get_db())
    return _repository
