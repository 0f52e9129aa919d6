"""Password hashing and bearer-token sessions."""
import datetime as dt
import threading
import uuid
from typing import Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config
from .models import RevokedToken
from .store import UserRecord

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt_sha256", "bcrypt"], default="pbkdf2_sha256", deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # unknown or corrupt hash
        return False


def _now():
    return dt.datetime.now(dt.timezone.utc)


class SqlDenylist:
    def __init__(self, db: Session):
        self.db = db

    def add(self, jti: str, expires_at: dt.datetime):
        # expired tokens fail on their own, so their entries can go
        self.db.query(RevokedToken).filter(RevokedToken.expires_at < _now()).delete(synchronize_session=False)
        if self.db.get(RevokedToken, jti) is None:
            self.db.add(RevokedToken(jti=jti, expires_at=expires_at))
        try:
            self.db.commit()
        except IntegrityError:
            # revoked concurrently
            self.db.rollback()

    def __contains__(self, jti):
        return self.db.get(RevokedToken, jti) is not None

    def __len__(self):
        return self.db.query(RevokedToken).count()


class MemoryDenylist:
    def __init__(self):
        self._revoked = {}
        self._lock = threading.Lock()

    def add(self, jti, expires_at):
        now = _now()
        with self._lock:
            self._revoked = {k: exp for k, exp in self._revoked.items() if exp >= now}
            self._revoked[jti] = expires_at

    def __contains__(self, jti):
        with self._lock:
            return jti in self._revoked

    def __len__(self):
        with self._lock:
            return len(self._revoked)


class TokenSessions:
    """Signed JWT sessions carried as `Authorization: Bearer <token>`.

    Tokens are self-contained; logout records the token's `jti` in a denylist
    until it would have expired anyway.
    """

    def __init__(self, denylist):
        self.denylist = denylist

    def establish(self, user: UserRecord) -> str:
        now = dt.datetime.now(dt.timezone.utc)
        claims = {
            "sub": user.id,
            "email": user.email,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + dt.timedelta(hours=config.JWT_TTL_HOURS),
        }
        return jwt.encode(claims, config.JWT_SECRET, algorithm=ALGORITHM)

    def _decode(self, token: Optional[str]) -> Optional[dict]:
        if not token:
            return None
        try:
            return jwt.decode(token, config.JWT_SECRET, algorithms=[ALGORITHM], options={"require": ["sub", "exp", "jti"]})
        except jwt.PyJWTError:
            return None

    def resolve(self, token: Optional[str]) -> Optional[dict]:
        claims = self._decode(token)
        if claims is None or claims["jti"] in self.denylist:
            return None
        return claims

    def revoke(self, token: Optional[str]) -> bool:
        claims = self._decode(token)
        if claims is None:
            return False
        expires_at = dt.datetime.fromtimestamp(claims["exp"], tz=dt.timezone.utc)
        self.denylist.add(claims["jti"], expires_at)
        return True
