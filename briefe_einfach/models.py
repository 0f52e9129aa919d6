import datetime as dt
import uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, String, Boolean, DateTime

Base = declarative_base()

def _utcnow():
    return dt.datetime.now(dt.timezone.utc)

class User(Base):
    __tablename__ = "users"
    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    is_subscribed = Column(Boolean, nullable=False, default=False)
    stripe_customer_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

class RevokedToken(Base):
    __tablename__ = "revoked_tokens"
    jti = Column(String(32), primary_key=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
