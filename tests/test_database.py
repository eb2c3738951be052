from datetime import timedelta

import mongomock
import pytest

from conftest import T0, make_quiz
from database import MemoryRepository, MongoRepository
from schemas import AdminCredentials, ContactMessage, PendingSignup, Result, Teacher


@pytest.fixture(params=["memory", "mongo"])
def store(request):
    if request.param == "memory":
        return MemoryRepository()
    return MongoRepository(mongomock.MongoClient()["quiz_test"])


def _result(quiz_id, sid, minutes, score=1):
    return Result(quiz_id=quiz_id, student_name="S", student_id=sid, score=score, total=3,
                  timestamp=T0 + timedelta(minutes=minutes))


def test_quiz_round_trip(store):
    quiz = make_quiz()
    store.save_quiz(quiz)

    loaded = store.load_quiz(quiz.quiz_id)
    assert loaded == quiz
    assert store.load_quiz("missing") is None


def test_save_quiz_replaces_whole_quiz(store):
    store.save_quiz(make_quiz())
    store.save_quiz(make_quiz(questions=[]))

    assert store.load_quiz("qtest0001").questions == []
    assert len(store.list_quizzes()) == 1


def test_list_quizzes_by_owner(store):
    store.save_quiz(make_quiz(quiz_id="qa", created_by="a@x"))
    store.save_quiz(make_quiz(quiz_id="qb", created_by="b@x"))

    assert [q.quiz_id for q in store.list_quizzes(created_by="b@x")] == ["qb"]
    assert sorted(q.quiz_id for q in store.list_quizzes()) == ["qa", "qb"]


def test_results_are_listed_oldest_first(store):
    store.save_result(_result("qa", "late", 5))
    store.save_result(_result("qa", "early", 1))
    store.save_result(_result("qb", "other", 0))

    assert [r.student_id for r in store.list_results("qa")] == ["early", "late"]


def test_delete_quiz_removes_results(store):
    store.save_quiz(make_quiz(quiz_id="qa"))
    store.save_result(_result("qa", "1", 1))

    assert store.delete_quiz("qa") is True
    assert store.list_results("qa") == []
    assert store.delete_quiz("qa") is False


def test_pending_signups(store):
    pending = PendingSignup(name="N", email="N@X.org", password_hash="h", timestamp=T0)
    assert store.add_pending(pending) is True
    assert store.add_pending(pending) is False

    assert [p.email for p in store.list_pending()] == ["n@x.org"]
    assert store.pop_pending("n@x.org").name == "N"
    assert store.pop_pending("n@x.org") is None
    assert store.list_pending() == []


def test_teachers_are_upserted_by_email(store):
    store.save_teacher(Teacher(name="A", email="a@x.org", password_hash="h1", approved=True))
    store.save_teacher(Teacher(name="A", email="A@x.org", password_hash="h2", approved=True))

    assert store.get_teacher("A@X.ORG").password_hash == "h2"
    assert len(store.list_teachers()) == 1
    assert store.get_teacher("nobody@x.org") is None


def test_admin_credentials_are_single_record(store):
    assert store.get_admin() is None
    store.save_admin(AdminCredentials(user="admin", password_hash="h1"))
    store.save_admin(AdminCredentials(user="root", password_hash="h2"))

    assert store.get_admin() == AdminCredentials(user="root", password_hash="h2")


def test_inbox_messages(store):
    store.add_message(ContactMessage(name="P", email="p@x", message="hi", timestamp=T0))
    assert [m.message for m in store.list_messages()] == ["hi"]
