from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional, Dict, Any
from datetime import datetime, timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext

import settings
from attempts import AttemptRegistry, get_attempts
from database import Repository, get_repository
from errors import AuthError, Conflict, Forbidden, NotFound, QuizError
from links import authorize_link, ceil_to_second, generate_link
from logging_config import configure_logging
from schemas import (
    AdminCredentials, AdminLoginRequest, AttemptStart, AttemptState, ContactMessage,
    ContactRequest, LinkRequest, LinkResponse, LoginRequest, PasswordChange, PendingSignup,
    Quiz, QuizIn, Result, SelectRequest, SignupRequest, SuspiciousEvent, Teacher, Token,
)
from scoring import PresentationSession

logger = configure_logging()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def seed_admin(repo: Repository):
    if repo.get_admin() is None:
        repo.save_admin(AdminCredentials(
            user=settings.ADMIN_USER,
            password_hash=pwd_context.hash(settings.ADMIN_PASSWORD),
        ))
        logger.info("seeded admin account %r", settings.ADMIN_USER)


@asynccontextmanager
async def lifespan(app: FastAPI):
    seed_admin(get_repository())
    yield


app = FastAPI(title="Quiz link service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QuizError)
async def quiz_error_handler(request, exc: QuizError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def get_current_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    if not authorization:
        raise AuthError("Not authenticated")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Invalid authentication scheme")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")
        role: str = payload.get("role")
        if user_id is None:
            raise AuthError("Invalid token")
        return {"uid": user_id, "email": payload.get("email"), "role": role}
    except JWTError:
        raise AuthError("Invalid token")


def require_teacher(user=Depends(get_current_user)) -> Dict[str, Any]:
    if user["role"] not in ("admin", "teacher"):
        raise Forbidden("Forbidden")
    return user


def require_admin(user=Depends(get_current_user)) -> Dict[str, Any]:
    if user["role"] != "admin":
        raise Forbidden("Forbidden")
    return user


@app.get("/")
async def root():
    return {"message": "Backend OK", "time": datetime.utcnow().isoformat()}


@app.get("/api/health")
async def health():
    return {"ok": True}


@app.post("/auth/login", response_model=Token)
async def login(payload: LoginRequest, repo: Repository = Depends(get_repository)):
    teacher = repo.get_teacher(payload.email)
    if not teacher or not teacher.approved or not pwd_context.verify(payload.password, teacher.password_hash):
        logger.warning("rejected teacher login for %s", payload.email)
        raise AuthError("Invalid credentials or account not approved yet")
    token = create_access_token({
        "sub": teacher.email,
        "email": teacher.email,
        "role": "teacher",
    })
    return Token(access_token=token)


@app.post("/auth/admin/login", response_model=Token)
async def admin_login(payload: AdminLoginRequest, repo: Repository = Depends(get_repository)):
    admin = repo.get_admin()
    if not admin or payload.user != admin.user or not pwd_context.verify(payload.password, admin.password_hash):
        logger.warning("rejected admin login for %s", payload.user)
        raise AuthError("Invalid credentials")
    return Token(access_token=create_access_token({"sub": admin.user, "role": "admin"}))


# Signup / approval
@app.post("/signup")
async def signup(data: SignupRequest, repo: Repository = Depends(get_repository)):
    email = data.email.strip().lower()
    if repo.get_teacher(email):
        raise Conflict("An account with this email already exists")
    pending = PendingSignup(name=data.name.strip(), email=email, password_hash=pwd_context.hash(data.password))
    if not repo.add_pending(pending):
        raise Conflict("A signup request was already sent")
    logger.info("signup request from %s", email)
    return {"ok": True}


@app.get("/admin/pending")
async def list_pending(repo: Repository = Depends(get_repository), admin=Depends(require_admin)):
    return [p.model_dump(exclude={"password_hash"}) for p in repo.list_pending()]


@app.post("/admin/pending/{email}/approve")
async def approve_pending(email: str, repo: Repository = Depends(get_repository), admin=Depends(require_admin)):
    pending = repo.pop_pending(email)
    if not pending:
        raise NotFound("No signup request for this email")
    repo.save_teacher(Teacher(
        name=pending.name,
        email=pending.email,
        password_hash=pending.password_hash,
        approved=True,
    ))
    logger.info("approved teacher %s", pending.email)
    return {"ok": True}


@app.post("/admin/pending/{email}/reject")
async def reject_pending(email: str, repo: Repository = Depends(get_repository), admin=Depends(require_admin)):
    if not repo.pop_pending(email):
        raise NotFound("No signup request for this email")
    logger.info("rejected signup for %s", email)
    return {"ok": True}


@app.get("/admin/teachers")
async def list_teachers(repo: Repository = Depends(get_repository), admin=Depends(require_admin)):
    return [t.model_dump(exclude={"password_hash"}) for t in repo.list_teachers()]


@app.post("/admin/teachers/{email}/password")
async def change_teacher_password(email: str, data: PasswordChange, repo: Repository = Depends(get_repository),
                                  admin=Depends(require_admin)):
    teacher = repo.get_teacher(email)
    if not teacher:
        raise NotFound("No member with this email")
    teacher.password_hash = pwd_context.hash(data.password)
    repo.save_teacher(teacher)
    return {"ok": True}


@app.post("/admin/credentials")
async def change_admin_credentials(data: AdminLoginRequest, repo: Repository = Depends(get_repository),
                                   admin=Depends(require_admin)):
    repo.save_admin(AdminCredentials(user=data.user.strip(), password_hash=pwd_context.hash(data.password)))
    logger.info("admin credentials changed (user %r)", data.user.strip())
    return {"ok": True}


# Contact inbox
@app.post("/contact")
async def contact(data: ContactRequest, repo: Repository = Depends(get_repository)):
    repo.add_message(ContactMessage(name=data.name.strip(), email=data.email.strip(), message=data.message.strip()))
    return {"ok": True}


@app.get("/admin/inbox", response_model=List[ContactMessage])
async def inbox(repo: Repository = Depends(get_repository), admin=Depends(require_admin)):
    return repo.list_messages()


# Quiz CRUD
def generate_quiz_id() -> str:
    import random, string
    return "q" + "".join(random.choices(string.ascii_lowercase + string.digits, k=8))


def _owned_quiz(repo: Repository, quiz_id: str, user: Dict[str, Any]) -> Quiz:
    quiz = repo.load_quiz(quiz_id)
    if not quiz:
        raise NotFound("Quiz not found")
    if user["role"] != "admin" and quiz.created_by != user["email"]:
        raise Forbidden("Forbidden")
    return quiz


@app.post("/quizzes", response_model=Quiz)
async def create_quiz(data: QuizIn, repo: Repository = Depends(get_repository), user=Depends(require_teacher)):
    quiz_id = generate_quiz_id()
    while repo.load_quiz(quiz_id):
        quiz_id = generate_quiz_id()
    quiz = Quiz(quiz_id=quiz_id, created_by=user["email"] or user["uid"], **data.model_dump())
    repo.save_quiz(quiz)
    logger.info("quiz %s saved by %s (%d questions)", quiz_id, quiz.created_by, len(quiz.questions))
    return quiz


@app.get("/quizzes", response_model=List[Quiz])
async def list_quizzes(repo: Repository = Depends(get_repository), user=Depends(require_teacher)):
    if user["role"] == "admin":
        return repo.list_quizzes()
    return repo.list_quizzes(created_by=user["email"])


@app.get("/quizzes/{quiz_id}", response_model=Quiz)
async def get_quiz(quiz_id: str, repo: Repository = Depends(get_repository), user=Depends(require_teacher)):
    return _owned_quiz(repo, quiz_id, user)


@app.put("/quizzes/{quiz_id}", response_model=Quiz)
async def replace_quiz(quiz_id: str, data: QuizIn, repo: Repository = Depends(get_repository),
                       user=Depends(require_teacher)):
    current = _owned_quiz(repo, quiz_id, user)
    quiz = Quiz(quiz_id=quiz_id, created_by=current.created_by, created_at=current.created_at, **data.model_dump())
    repo.save_quiz(quiz)
    logger.info("quiz %s replaced", quiz_id)
    return quiz


@app.delete("/quizzes/{quiz_id}")
async def delete_quiz(quiz_id: str, repo: Repository = Depends(get_repository), user=Depends(require_teacher)):
    _owned_quiz(repo, quiz_id, user)
    repo.delete_quiz(quiz_id)
    logger.info("quiz %s deleted with its results", quiz_id)
    return {"ok": True}


@app.post("/quizzes/{quiz_id}/links", response_model=LinkResponse)
async def create_link(quiz_id: str, data: LinkRequest, repo: Repository = Depends(get_repository),
                      user=Depends(require_teacher)):
    _owned_quiz(repo, quiz_id, user)
    now = datetime.utcnow()
    validity = timedelta(minutes=data.validity_minutes) if data.validity_minutes else None
    url = generate_link(quiz_id, validity, data.student_name, data.student_id, now=now)
    expires_at = ceil_to_second(now + validity) if validity else None
    return LinkResponse(url=url, quiz_id=quiz_id, expires_at=expires_at)


@app.get("/quizzes/{quiz_id}/results", response_model=List[Result])
async def quiz_results(quiz_id: str, repo: Repository = Depends(get_repository), user=Depends(require_teacher)):
    _owned_quiz(repo, quiz_id, user)
    return repo.list_results(quiz_id)


# Student attempts
def _linked_quiz(repo: Repository, quiz_id: str, exp: Optional[int], sig: str) -> Quiz:
    authorize_link(quiz_id, exp, sig)
    quiz = repo.load_quiz(quiz_id)
    if not quiz:
        raise NotFound("Quiz not found")
    return quiz


def _attempt_state(attempt_id: str, session: PresentationSession) -> AttemptState:
    return AttemptState(
        attempt_id=attempt_id,
        quiz_id=session.quiz_id,
        seconds_per_question=session.seconds_per_question,
        position=session.current_position,
        total=session.total,
        finished=session.finished,
        selected_index=session.selected_index,
        deadline=session.deadline,
        question=session.current_question(),
    )


@app.get("/links/check")
async def check_link(id: str, sig: str, exp: Optional[int] = Query(None),
                     repo: Repository = Depends(get_repository)):
    quiz = _linked_quiz(repo, id, exp, sig)
    return {
        "valid": True,
        "quiz_id": quiz.quiz_id,
        "title": quiz.title,
        "course": quiz.course,
        "seconds_per_question": quiz.seconds_per_question,
        "total": len(quiz.questions),
    }


@app.post("/attempts/start", response_model=AttemptState)
async def start_attempt(data: AttemptStart, repo: Repository = Depends(get_repository),
                        attempts: AttemptRegistry = Depends(get_attempts)):
    quiz = _linked_quiz(repo, data.quiz_id, data.exp, data.sig)
    attempt_id, session = attempts.start(quiz, data.student_name, data.student_id)
    return _attempt_state(attempt_id, session)


@app.get("/attempts/{attempt_id}", response_model=AttemptState)
async def get_attempt(attempt_id: str, attempts: AttemptRegistry = Depends(get_attempts)):
    return _attempt_state(attempt_id, attempts.get(attempt_id))


@app.post("/attempts/{attempt_id}/select", response_model=AttemptState)
async def select_option(attempt_id: str, data: SelectRequest, attempts: AttemptRegistry = Depends(get_attempts)):
    return _attempt_state(attempt_id, attempts.select(attempt_id, data.option_index))


@app.post("/attempts/{attempt_id}/advance", response_model=AttemptState)
async def advance_attempt(attempt_id: str, attempts: AttemptRegistry = Depends(get_attempts)):
    return _attempt_state(attempt_id, attempts.advance(attempt_id))


@app.post("/monitor/log")
async def log_event(event: SuspiciousEvent, attempts: AttemptRegistry = Depends(get_attempts)):
    attempts.tab_hidden(event.attempt_id)
    logger.info("attempt %s reported %s", event.attempt_id, event.type)
    return {"status": "logged"}


@app.get("/attempts/{attempt_id}/result", response_model=Result)
async def attempt_result(attempt_id: str, attempts: AttemptRegistry = Depends(get_attempts)):
    return attempts.result(attempt_id)
