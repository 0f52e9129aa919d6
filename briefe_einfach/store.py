"""User credential store.

`UserRepository` is what the services talk to. `SqlUserRepository` backs the
running app; `InMemoryUserRepository` is used by the tests.
"""
import datetime as dt
import threading
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConflictError
from .models import User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass
class UserRecord:
    id: str
    email: str
    password_hash: str
    is_subscribed: bool = False
    stripe_customer_id: Optional[str] = None
    created_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))


def _email_taken():
    return ConflictError("Diese E-Mail ist bereits registriert", code="email_taken")


class UserRepository:
    def find_by_email(self, email: str) -> Optional[UserRecord]:
        raise NotImplementedError

    def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        raise NotImplementedError

    def find_by_customer_id(self, customer_id: str) -> Optional[UserRecord]:
        raise NotImplementedError

    def insert(self, email: str, password_hash: str) -> UserRecord:
        """Create a user; raises ConflictError when the email is already taken."""
        raise NotImplementedError

    def update_subscription(self, user_id: str, is_subscribed: bool, customer_id: Optional[str] = None) -> Optional[UserRecord]:
        raise NotImplementedError

    def set_customer_id(self, user_id: str, customer_id: str) -> None:
        raise NotImplementedError


class SqlUserRepository(UserRepository):
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _record(user: Optional[User]) -> Optional[UserRecord]:
        if user is None:
            return None
        return UserRecord(
            id=user.id,
            email=user.email,
            password_hash=user.password_hash,
            is_subscribed=bool(user.is_subscribed),
            stripe_customer_id=user.stripe_customer_id,
            created_at=user.created_at,
        )

    def find_by_email(self, email):
        return self._record(self.db.query(User).filter(User.email == normalize_email(email)).first())

    def find_by_id(self, user_id):
        return self._record(self.db.get(User, user_id))

    def find_by_customer_id(self, customer_id):
        if not customer_id:
            return None
        return self._record(self.db.query(User).filter(User.stripe_customer_id == customer_id).first())

    def insert(self, email, password_hash):
        # The unique index on email is the check-and-insert.
        user = User(email=normalize_email(email), password_hash=password_hash)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise _email_taken()
        self.db.refresh(user)
        return self._record(user)

    def update_subscription(self, user_id, is_subscribed, customer_id=None):
        user = self.db.get(User, user_id)
        if user is None:
            return None
        user.is_subscribed = is_subscribed
        if customer_id and not user.stripe_customer_id:
            user.stripe_customer_id = customer_id
        self.db.commit()
        self.db.refresh(user)
        return self._record(user)

    def set_customer_id(self, user_id, customer_id):
        user = self.db.get(User, user_id)
        if user is not None:
            user.stripe_customer_id = customer_id
            self.db.commit()


class InMemoryUserRepository(UserRepository):
    def __init__(self):
        self._by_id: Dict[str, UserRecord] = {}
        self._lock = threading.Lock()

    def find_by_email(self, email):
        email = normalize_email(email)
        with self._lock:
            for user in self._by_id.values():
                if user.email == email:
                    return replace(user)
        return None

    def find_by_id(self, user_id):
        with self._lock:
            user = self._by_id.get(user_id)
            return replace(user) if user else None

    def find_by_customer_id(self, customer_id):
        if not customer_id:
            return None
        with self._lock:
            for user in self._by_id.values():
                if user.stripe_customer_id == customer_id:
                    return replace(user)
        return None

    def insert(self, email, password_hash):
        email = normalize_email(email)
        with self._lock:
            if any(u.email == email for u in self._by_id.values()):
                raise _email_taken()
            user = UserRecord(id=uuid.uuid4().hex, email=email, password_hash=password_hash)
            self._by_id[user.id] = user
            return replace(user)

    def update_subscription(self, user_id, is_subscribed, customer_id=None):
        with self._lock:
            user = self._by_id.get(user_id)
            if user is None:
                return None
            user.is_subscribed = is_subscribed
            if customer_id and not user.stripe_customer_id:
                user.stripe_customer_id = customer_id
            return replace(user)

    def set_customer_id(self, user_id, customer_id):
        with self._lock:
            user = self._by_id.get(user_id)
            if user is not None:
                user.stripe_customer_id = customer_id

    def __len__(self):
        return len(self._by_id)
