from typing import Optional, Tuple
from fastapi import APIRouter, Depends
from . import config
from .deps import get_optional_user, get_sessions, get_users, oauth2_scheme
from .errors import AuthError, ValidationError
from .log import get_logger
from .schemas import AuthOut, LoginIn, MeOut, OkOut, RegisterIn, user_out
from .security import TokenSessions, hash_password, verify_password
from .store import UserRecord, UserRepository, normalize_email

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def register(users: UserRepository, sessions: TokenSessions, email: str, password: str) -> Tuple[UserRecord, str]:
    if len(password or "") < config.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Das Passwort muss mindestens {config.PASSWORD_MIN_LENGTH} Zeichen lang sein",
            code="password_too_short",
        )
    user = users.insert(normalize_email(email), hash_password(password))
    logger.info(f"user registered: {user.id}")
    return user, sessions.establish(user)


def login(users: UserRepository, sessions: TokenSessions, email: str, password: str) -> Tuple[UserRecord, str]:
    user = users.find_by_email(email)
    if not user or not verify_password(password or "", user.password_hash):
        logger.info("login failed")
        raise AuthError("E-Mail oder Passwort ist falsch", code="invalid_credentials")
    return user, sessions.establish(user)


def logout(sessions: TokenSessions, token: Optional[str]) -> None:
    sessions.revoke(token)


@router.post("/register", response_model=AuthOut)
def register_route(payload: RegisterIn, users: UserRepository = Depends(get_users), sessions: TokenSessions = Depends(get_sessions)):
    user, token = register(users, sessions, payload.email, payload.password)
    return AuthOut(user=user_out(user), token=token)

@router.post("/login", response_model=AuthOut)
def login_route(payload: LoginIn, users: UserRepository = Depends(get_users), sessions: TokenSessions = Depends(get_sessions)):
    user, token = login(users, sessions, payload.email, payload.password)
    return AuthOut(user=user_out(user), token=token)

@router.post("/logout", response_model=OkOut)
def logout_route(token: Optional[str] = Depends(oauth2_scheme), sessions: TokenSessions = Depends(get_sessions)):
    logout(sessions, token)
    return OkOut()

@router.get("/me", response_model=MeOut, response_model_exclude_none=True)
def me(user: Optional[UserRecord] = Depends(get_optional_user)):
    if user is None:
        return MeOut(logged_in=False)
    return MeOut(logged_in=True, user=user_out(user))
