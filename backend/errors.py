"""Error taxonomy for quiz attempts and the admin/teacher surface.

Every error is scoped to a single request or attempt. ``NotFound`` and
``Expired`` end an attempt for good, ``InvalidAttempt`` asks the student to
fill in what is missing, ``OutOfRange`` only appears under the strict
selection policy.
"""


class QuizError(Exception):
    status_code = 400
    code = "error"
    retry = True

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.code)
        self.detail = detail or self.code

    def to_dict(self):
        body = {"detail": self.detail, "code": self.code}
        if not self.retry:
            body["retry"] = False
        return body


class NotFound(QuizError):
    status_code = 404
    code = "not_found"
    retry = False


class Expired(QuizError):
    status_code = 410
    code = "expired"
    retry = False


class InvalidAttempt(QuizError):
    status_code = 400
    code = "invalid_attempt"


class OutOfRange(QuizError):
    status_code = 422
    code = "out_of_range"


class AuthError(QuizError):
    status_code = 401
    code = "unauthorized"


class Forbidden(QuizError):
    status_code = 403
    code = "forbidden"


class Conflict(QuizError):
    status_code = 409
    code = "conflict"
