from fastapi import Depends, Header
from sqlalchemy.orm import Session

from behavior_points.db import get_db
from behavior_points.services.privilege_service import Identity, authenticate


def get_session_token(
    authorization: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None, alias="X-Session-Token"),
) -> str | None:
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    return x_session_token


def get_identity(
    token: str | None = Depends(get_session_token),
    db: Session = Depends(get_db),
) -> Identity:
    return authenticate(db, token)
