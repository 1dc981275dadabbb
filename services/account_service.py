import logging
import re

from fastapi import HTTPException, status
from sqlmodel import Session

from auth import TokenPayload, create_access_token
from database import User
from models import (
    AuthData,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    UpdateUsernameRequest,
    UpdateUsernameResponse,
    UserResponse,
    UsernameData,
    VerifyOTPRequest,
)
from otpmodel.otp_model import PendingProfile, Purpose, SignupChallenge
from services import user_service
from services.email_service import EMAIL_ERRORS, EmailService
from services.otp_service import OTPLedger, generate_otp

logger = logging.getLogger("todo_api.auth")

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
MAX_USERNAME_LENGTH = 50

INVALID_OTP_MESSAGE = "Invalid or expired OTP"
RESET_REQUESTED_MESSAGE = "If an account exists with this email, a password reset code has been sent."


def validate_email(email: str) -> str:
    email = email.lower().strip()

    if not EMAIL_REGEX.match(email):
        logger.warning(f"Rejected request due to invalid email format: {email}")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid email format")

    return email


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )


def validate_username(username: str) -> str:
    username = username.strip()

    if not username or len(username) > MAX_USERNAME_LENGTH:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Username must be between 1 and {MAX_USERNAME_LENGTH} characters",
        )

    return username


def build_auth_response(user: User) -> AuthResponse:
    token = create_access_token(user.id, user.username, user.email)
    return AuthResponse(
        data=AuthData(
            token=token,
            user=UserResponse(id=user.id, username=user.username, email=user.email),
        )
    )


def request_signup(
    request: SignupRequest,
    session: Session,
    ledger: OTPLedger,
    mailer: EmailService,
) -> SignupResponse:
    """Hold the candidate account in a signup challenge and email its code."""
    email = validate_email(request.email)
    username = validate_username(request.username)
    validate_password(request.password)

    if user_service.get_user_by_email(session, email):
        logger.warning(f"Rejected signup for existing email={email}")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "User already exists with this email")

    if user_service.get_user_by_username(session, username):
        logger.warning(f"Rejected signup for taken username={username}")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Username is already taken")

    otp = generate_otp()
    profile = PendingProfile(
        username=username,
        password_hash=user_service.hash_password(request.password),
    )
    ledger.issue(email, otp, Purpose.SIGNUP, profile)

    try:
        mailer.send_verification_email(email, otp, Purpose.SIGNUP)
    except EMAIL_ERRORS:
        # Leave nothing behind so a retry re-issues cleanly
        ledger.clear(email)
        logger.error(f"Signup OTP could not be sent to email={email}")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Signup failed. Please try again.")
    except Exception:
        ledger.clear(email)
        logger.exception(f"Unexpected error sending signup OTP to email={email}")
        raise

    logger.info(f"Signup OTP sent to email={email}")
    return SignupResponse(
        message="OTP sent to email. Please verify to complete signup.",
        email=email,
    )


def confirm_signup(
    request: VerifyOTPRequest,
    session: Session,
    ledger: OTPLedger,
) -> AuthResponse:
    """Create the pending account once its signup code is confirmed."""
    email = validate_email(request.email)

    # The account is built from this snapshot even if the email is re-issued later
    challenge = ledger.peek(email)
    if not isinstance(challenge, SignupChallenge):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, INVALID_OTP_MESSAGE)

    if not ledger.check(email, request.otp.strip(), Purpose.SIGNUP):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, INVALID_OTP_MESSAGE)

    if user_service.get_user_by_email(session, email):
        ledger.clear(email)
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "User already exists with this email")

    profile = challenge.pending_profile
    user = user_service.create_user(session, profile.username, email, profile.password_hash)
    ledger.clear(email)

    logger.info(f"Account created for email={email}, id={user.id}")
    return build_auth_response(user)


def login(request: LoginRequest, session: Session) -> AuthResponse:
    email = validate_email(request.email)

    user = user_service.get_user_by_email(session, email)
    if user is None or not user_service.verify_password(user.password_hash, request.password):
        logger.warning(f"Failed login attempt for email={email}")
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid email or password")

    logger.info(f"User logged in: id={user.id}")
    return build_auth_response(user)


def request_password_reset(
    request: ForgotPasswordRequest,
    session: Session,
    ledger: OTPLedger,
    mailer: EmailService,
) -> MessageResponse:
    """
    Email a password reset code if the account exists.

    The response is the same whether or not the account exists, and a failed
    send is only logged, so the endpoint cannot be used to enumerate accounts.
    """
    email = validate_email(request.email)

    if user_service.get_user_by_email(session, email) is None:
        logger.info(f"Password reset requested for unknown email={email}")
        return MessageResponse(message=RESET_REQUESTED_MESSAGE)

    otp = generate_otp()
    ledger.issue(email, otp, Purpose.PASSWORD_RESET)

    try:
        mailer.send_verification_email(email, otp, Purpose.PASSWORD_RESET)
        logger.info(f"Password reset OTP sent to email={email}")
    except EMAIL_ERRORS:
        ledger.clear(email)
        logger.error(f"Password reset OTP could not be sent to email={email}")
    except Exception:
        ledger.clear(email)
        logger.exception(f"Unexpected error sending password reset OTP to email={email}")
        raise

    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


def confirm_reset_otp(request: VerifyOTPRequest, ledger: OTPLedger) -> MessageResponse:
    """Check a reset code without using it up; the reset itself clears it."""
    email = validate_email(request.email)

    if not ledger.check(email, request.otp.strip(), Purpose.PASSWORD_RESET):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, INVALID_OTP_MESSAGE)

    return MessageResponse(message="OTP verified. You can now reset your password.")


def finalize_password_reset(
    request: ResetPasswordRequest,
    session: Session,
    ledger: OTPLedger,
) -> MessageResponse:
    email = validate_email(request.email)
    validate_password(request.newPassword)

    if not ledger.check(email, request.otp.strip(), Purpose.PASSWORD_RESET):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, INVALID_OTP_MESSAGE)

    user = user_service.get_user_by_email(session, email)
    if user is None:
        ledger.clear(email)
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")

    user.password_hash = user_service.hash_password(request.newPassword)
    user_service.save_user(session, user)
    ledger.clear(email)

    logger.info(f"Password reset for id={user.id}")
    return MessageResponse(message="Password reset successfully. Please log in with your new password.")


def update_username(
    request: UpdateUsernameRequest,
    token: TokenPayload,
    session: Session,
) -> UpdateUsernameResponse:
    username = validate_username(request.newUsername)

    user = user_service.get_user_by_id(session, token.user_id)
    if user is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")

    holder = user_service.get_user_by_username(session, username)
    if holder is not None and holder.id != user.id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Username is already taken")

    user.username = username
    user_service.save_user(session, user)

    logger.info(f"Username updated for id={user.id}")
    return UpdateUsernameResponse(
        message="Username updated successfully",
        data=UsernameData(
            username=user.username,
            email=user.email,
            token=create_access_token(user.id, user.username, user.email),
        ),
    )
