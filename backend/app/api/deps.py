"""FastAPI dependencies for the API layer."""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.security import decode_access_token
from app.database import get_db
from app.models import Channel, User
from app.services.errors import ServiceError
from app.services.membership import load_accessible_channel

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.auth_token_url)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the JWT token."""

    return get_user_from_token(token, db)


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve a user from a JWT token or raise an HTTP 401 error."""

    payload = decode_access_token(token)
    sub = payload.get("sub")
    if sub is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


def require_channel_access(
    channel_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Channel:
    """Load the channel and apply the same access rule as the realtime namespace."""

    try:
        return load_accessible_channel(db, channel_id, current_user.id)
    except ServiceError as exc:
        raise exc.to_http() from exc
