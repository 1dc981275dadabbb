import logging
import secrets
import string
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from argon2 import PasswordHasher
from argon2.exceptions import (
    InvalidHash,
    VerificationError,
    VerifyMismatchError,
)

from config import OTP_CHARACTER_LENGTH, OTP_LIFETIME_MINUTES
from otpmodel.otp_model import (
    Challenge,
    PasswordResetChallenge,
    PendingProfile,
    Purpose,
    SignupChallenge,
)

logger = logging.getLogger("todo_api.otp")

ph = PasswordHasher()


def generate_otp(length: int = OTP_CHARACTER_LENGTH) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OTPLedger(Protocol):
    """Holds at most one pending verification challenge per email."""

    def issue(
        self,
        email: str,
        code: str,
        purpose: Purpose,
        pending_profile: PendingProfile | None = None,
        ttl: timedelta | None = None,
    ) -> None: ...

    def check(self, email: str, code: str, purpose: Purpose | None = None) -> bool: ...

    def peek(self, email: str) -> Optional[Challenge]: ...

    def clear(self, email: str) -> None: ...


class InMemoryOTPLedger:
    """
    Process-local OTP ledger.

    Issuing for an email replaces whatever challenge it had. Expired entries
    are only evicted when that same email is read again; there is no sweeper.
    ``check`` never consumes a challenge, ``clear`` is the only way to use one up.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=OTP_LIFETIME_MINUTES),
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl = ttl
        self._clock = clock
        self._challenges: dict[str, Challenge] = {}
        self._lock = threading.Lock()

    def issue(
        self,
        email: str,
        code: str,
        purpose: Purpose,
        pending_profile: PendingProfile | None = None,
        ttl: timedelta | None = None,
    ) -> None:
        expires_at = self._clock() + (ttl if ttl is not None else self.ttl)
        code_hash = ph.hash(code)

        if purpose is Purpose.SIGNUP:
            if pending_profile is None:
                raise ValueError("A signup challenge requires a pending profile")
            challenge = SignupChallenge(
                email=email,
                code_hash=code_hash,
                expires_at=expires_at,
                pending_profile=pending_profile,
            )
        else:
            if pending_profile is not None:
                raise ValueError("Only signup challenges carry a pending profile")
            challenge = PasswordResetChallenge(
                email=email, code_hash=code_hash, expires_at=expires_at
            )

        with self._lock:
            self._challenges[email] = challenge

        logger.info(f"Issued {purpose.value} challenge for email={email}")

    def check(self, email: str, code: str, purpose: Purpose | None = None) -> bool:
        challenge = self.peek(email)
        if challenge is None:
            return False

        if purpose is not None and challenge.purpose is not purpose:
            logger.warning(
                f"OTP purpose mismatch for email={email}: expected {purpose.value}, "
                f"found {challenge.purpose.value}"
            )
            return False

        try:
            return ph.verify(challenge.code_hash, code)
        except VerifyMismatchError:
            logger.warning(f"OTP mismatch for email={email}")
            return False
        except InvalidHash:
            logger.error(f"OTP verification failed due to invalid hash for email={email}")
            return False
        except VerificationError:
            logger.exception(f"General Argon2 verification error for email={email}")
            return False

    def peek(self, email: str) -> Optional[Challenge]:
        with self._lock:
            challenge = self._challenges.get(email)
            if challenge is None:
                return None

            if challenge.is_expired(self._clock()):
                del self._challenges[email]
                logger.info(f"Evicted expired {challenge.purpose.value} challenge for email={email}")
                return None

            return challenge

    def clear(self, email: str) -> None:
        with self._lock:
            self._challenges.pop(email, None)


otp_ledger = InMemoryOTPLedger()


def get_otp_ledger() -> OTPLedger:
    return otp_ledger
