from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Purpose(str, Enum):
    SIGNUP = "signup"
    PASSWORD_RESET = "password-reset"


class PendingProfile(BaseModel):
    """Account fields held back until the signup code is confirmed."""

    model_config = ConfigDict(frozen=True)

    username: str
    password_hash: str


class BaseChallenge(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    code_hash: str  # argon2 hash of the one-time code
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class SignupChallenge(BaseChallenge):
    purpose: Literal[Purpose.SIGNUP] = Purpose.SIGNUP
    pending_profile: PendingProfile


class PasswordResetChallenge(BaseChallenge):
    purpose: Literal[Purpose.PASSWORD_RESET] = Purpose.PASSWORD_RESET


Challenge = Annotated[
    Union[SignupChallenge, PasswordResetChallenge],
    Field(discriminator="purpose"),
]
