from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime

LEFT_PLATFORM_NOTE = "left platform"


def _normalize_email(value: str) -> str:
    return value.strip().lower()


# Quizzes Collection Schema
class Question(BaseModel):
    type: Literal["mcq", "true_false"] = "mcq"
    text: str
    options: List[str]
    correct_index: int

    @model_validator(mode="after")
    def check_options(self):
        if self.type == "true_false" and len(self.options) != 2:
            raise ValueError("true_false questions need exactly 2 options")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError("correct_index must point at one of the options")
        return self


class QuizIn(BaseModel):
    title: str
    course: str = ""
    seconds_per_question: int = Field(gt=0)
    questions: List[Question] = []


class Quiz(QuizIn):
    quiz_id: str
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


# Results Collection Schema
class Result(BaseModel):
    model_config = ConfigDict(frozen=True)

    quiz_id: str
    student_name: str
    student_id: str
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    note: Literal["left platform", ""] = ""


# Users / Pending / Admin / Inbox Collection Schemas
class Teacher(BaseModel):
    name: str
    email: str
    password_hash: str
    approved: bool = False

    normalize_email = field_validator("email")(_normalize_email)


class PendingSignup(BaseModel):
    name: str
    email: str
    password_hash: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    normalize_email = field_validator("email")(_normalize_email)


class AdminCredentials(BaseModel):
    user: str
    password_hash: str


class ContactMessage(BaseModel):
    name: str
    email: str
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


# Request / response bodies
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: str
    password: str


class AdminLoginRequest(BaseModel):
    user: str = Field(min_length=1, pattern=r"\S")
    password: str = Field(min_length=1)


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str = Field(min_length=1)


class PasswordChange(BaseModel):
    password: str = Field(min_length=1)


class ContactRequest(BaseModel):
    name: str
    email: str
    message: str


class LinkRequest(BaseModel):
    validity_minutes: Optional[int] = Field(default=None, gt=0)
    student_name: Optional[str] = None
    student_id: Optional[str] = None


class LinkResponse(BaseModel):
    url: str
    quiz_id: str
    expires_at: Optional[datetime] = None


class AttemptStart(BaseModel):
    quiz_id: str
    sig: str
    exp: Optional[int] = None
    student_name: Optional[str] = None
    student_id: Optional[str] = None


class SelectRequest(BaseModel):
    option_index: Optional[int] = None


class SuspiciousEvent(BaseModel):
    attempt_id: str
    type: Literal["blur", "visibility_hidden"] = "visibility_hidden"


class PresentedQuestion(BaseModel):
    position: int
    type: str
    text: str
    options: List[str]


class AttemptState(BaseModel):
    attempt_id: str
    quiz_id: str
    seconds_per_question: int
    position: int
    total: int
    finished: bool
    selected_index: Optional[int] = None
    deadline: Optional[datetime] = None
    question: Optional[PresentedQuestion] = None
