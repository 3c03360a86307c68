from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_db
from core.security import decode_token
from services.repository import TimetableRepository
from services.timetable_generation import TimetableGenerationService


bearer_scheme = HTTPBearer(auto_error=False)


def _extract_token(request: Request, creds: HTTPAuthorizationCredentials | None) -> str | None:
    if creds is not None and creds.credentials:
        return creds.credentials
    cookie_token = request.cookies.get("access_token")
    return cookie_token or None


def get_token_payload(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    cached = getattr(request.state, "auth_payload", None)
    if isinstance(cached, dict):
        return cached

    token = _extract_token(request, creds)
    if not token:
        raise HTTPException(status_code=401, detail="NOT_AUTHENTICATED")
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="INVALID_TOKEN")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="INVALID_TOKEN")

    request.state.auth_payload = payload
    return payload


def require_admin(payload: dict = Depends(get_token_payload)) -> dict:
    role = str(payload.get("role") or "").upper()
    if role != "ADMIN":
        raise HTTPException(status_code=403, detail="NOT_AUTHORIZED")
    return payload


def get_repository(db: Session = Depends(get_db)) -> TimetableRepository:
    return TimetableRepository(db)


def get_generation_service(
    repository: TimetableRepository = Depends(get_repository),
) -> TimetableGenerationService:
    return TimetableGenerationService(repository, settings)
