from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from . import config
from .db import get_db
from .errors import AuthError, SubscriptionRequired
from .security import SqlDenylist, TokenSessions
from .store import SqlUserRepository, UserRecord, UserRepository

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

def get_users(db: Session = Depends(get_db)) -> UserRepository:
    return SqlUserRepository(db)

def get_sessions(db: Session = Depends(get_db)) -> TokenSessions:
    return TokenSessions(SqlDenylist(db))

def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    users: UserRepository = Depends(get_users),
    sessions: TokenSessions = Depends(get_sessions),
) -> Optional[UserRecord]:
    claims = sessions.resolve(token)
    if claims is None:
        return None
    return users.find_by_id(claims["sub"])

def get_current_user(user: Optional[UserRecord] = Depends(get_optional_user)) -> UserRecord:
    if user is None:
        raise AuthError()
    return user

def require_active_subscription(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    if config.DEV_ALLOW_ALL or (config.TEST_EMAIL and user.email == config.TEST_EMAIL):
        return user
    if not user.is_subscribed:
        raise SubscriptionRequired()
    return user
