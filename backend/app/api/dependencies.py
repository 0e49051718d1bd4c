"""
Shared route dependencies: authenticated user and per-process services.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.security import get_user_id_from_token
from app.db.session import get_db
from app.models.user import User
from app.services.broker import MessageBroker
from app.services.push_service import PushWorkerPool

bearer_scheme = HTTPBearer(auto_error=False)


def get_user_by_token(token: Optional[str], db: Session) -> Optional[User]:
    """Resolve a bearer token to an active user, or None."""
    if not token:
        return None
    user_id = get_user_id_from_token(token)
    if user_id is None:
        return None
    return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Get the user owning the bearer token of the request."""
    token = credentials.credentials if credentials else None
    user = get_user_by_token(token, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_broker(request: Request) -> Optional[MessageBroker]:
    return getattr(request.app.state, "broker", None)


def get_push_pool(request: Request) -> Optional[PushWorkerPool]:
    return getattr(request.app.state, "push_pool", None)
