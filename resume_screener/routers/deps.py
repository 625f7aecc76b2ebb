"""
Request-scoped dependencies.

Authentication happens upstream; the gateway forwards the caller's identity in
the X-User-Id header and every query below is scoped to it.
"""
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from resume_screener.database import get_db
from resume_screener.services.screening_service import ensure_profile

logger = logging.getLogger(__name__)


def get_current_user_id(
    x_user_id: str = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> str:
    if not x_user_id or not x_user_id.strip():
        logger.warning("Request rejected: missing X-User-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    user_id = x_user_id.strip()
    ensure_profile(db, user_id)
    return user_id
