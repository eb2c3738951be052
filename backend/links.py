"""Time-limited, shareable quiz links.

A link is never stored: it is derived from the quiz id and the moment it was
issued, and travels in the URL as ``id``, ``exp`` (epoch seconds, optional)
and ``sig``. ``sig`` is a JWT over the first two so a student cannot stretch
the expiry by editing the URL.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from jose import JWTError, jwt

import settings
from errors import Expired, NotFound, QuizError

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class AccessLink:
    quiz_id: str
    expires_at: Optional[datetime] = None


def to_epoch(value: datetime) -> int:
    return int((value - _EPOCH).total_seconds())


def from_epoch(value: int) -> datetime:
    return _EPOCH + timedelta(seconds=value)


def ceil_to_second(value: datetime) -> datetime:
    if value.microsecond:
        return value.replace(microsecond=0) + timedelta(seconds=1)
    return value


def issue(quiz_id: str, validity_duration: Optional[timedelta] = None, now: Optional[datetime] = None) -> AccessLink:
    if validity_duration is None:
        return AccessLink(quiz_id=quiz_id)
    now = now or datetime.utcnow()
    return AccessLink(quiz_id=quiz_id, expires_at=now + validity_duration)


def is_valid(link: AccessLink, now: Optional[datetime] = None) -> bool:
    if link.expires_at is None:
        return True
    now = now or datetime.utcnow()
    return now <= link.expires_at


def sign(link: AccessLink) -> str:
    # not "exp": expiry is checked by is_valid against the caller's clock
    claims = {
        "qid": link.quiz_id,
        "expires": to_epoch(link.expires_at) if link.expires_at else None,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def generate_link(
    quiz_id: str,
    validity_duration: Optional[timedelta] = None,
    student_name: Optional[str] = None,
    student_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    link = issue(quiz_id, validity_duration, now)
    if link.expires_at is not None:
        # the URL carries whole seconds, never earlier than now + validity
        link = AccessLink(quiz_id, ceil_to_second(link.expires_at))
    params = {"id": quiz_id}
    if link.expires_at is not None:
        params["exp"] = str(to_epoch(link.expires_at))
    params["sig"] = sign(link)
    if student_name:
        params["name"] = student_name
    if student_id:
        params["sid"] = student_id
    logger.info("issued link for quiz %s (expires %s)", quiz_id, link.expires_at or "never")
    return f"{settings.PUBLIC_BASE_URL}/student.html?{urlencode(params)}"


def authorize_link(
    quiz_id: str,
    supplied_expiry: Optional[int],
    signature: str,
    now: Optional[datetime] = None,
) -> AccessLink:
    try:
        claims = jwt.decode(signature, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise NotFound("This quiz link is not valid")
    if claims.get("qid") != quiz_id or claims.get("expires") != supplied_expiry:
        raise NotFound("This quiz link is not valid")
    link = AccessLink(quiz_id, from_epoch(supplied_expiry) if supplied_expiry is not None else None)
    if not is_valid(link, now):
        raise Expired("This quiz link has expired")
    return link


def is_link_authorized(
    quiz_id: str,
    supplied_expiry: Optional[int],
    signature: str,
    now: Optional[datetime] = None,
) -> bool:
    try:
        authorize_link(quiz_id, supplied_expiry, signature, now)
    except QuizError:
        return False
    return True
