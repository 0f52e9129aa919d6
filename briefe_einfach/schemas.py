from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel


class _Out(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterIn(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def bare_address(cls, v):
        # EmailStr would also take "Name <addr>", which login cannot match
        if isinstance(v, str) and ("<" in v or ">" in v or " " in v.strip()):
            raise ValueError("Bitte nur die E-Mail-Adresse angeben")
        return v

class LoginIn(BaseModel):
    # plain str so a malformed email fails like any other bad login
    email: str
    password: str

class ExplainIn(BaseModel):
    text: str = ""

class TranslateIn(BaseModel):
    text: str = ""
    target: str = "de"


class UserOut(_Out):
    id: str
    email: str
    is_subscribed: bool

class AuthOut(_Out):
    ok: bool = True
    user: UserOut
    token: str
    token_type: str = "bearer"

class MeOut(_Out):
    ok: bool = True
    logged_in: bool
    user: Optional[UserOut] = None

class OkOut(_Out):
    ok: bool = True

class ResultOut(_Out):
    ok: bool = True
    result: str

class CheckoutOut(_Out):
    ok: bool = True
    url: str

class StatusOut(_Out):
    ok: bool = True
    is_subscribed: bool

class WebhookOut(_Out):
    received: bool = True


def user_out(user) -> UserOut:
    return UserOut(id=user.id, email=user.email, is_subscribed=user.is_subscribed)
