from dataclasses import dataclass
from typing import Optional

import bcrypt
from fastapi import Request

MIN_PASSWORD_CHARS = 6
# bcrypt only reads the first 72 bytes and rejects anything longer
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if password_too_long(password):
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller for a single request."""

    user_id: Optional[int] = None
    username: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency: build the request context from the session cookie."""
    return RequestContext(
        user_id=request.session.get("user_id"),
        username=request.session.get("username"),
    )


def login_session(request: Request, user_id: int, username: str) -> RequestContext:
    request.session["user_id"] = user_id
    request.session["username"] = username
    return RequestContext(user_id=user_id, username=username)


def logout_session(request: Request) -> None:
    request.session.clear()
