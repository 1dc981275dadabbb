from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import TokenPayload, require_auth
from config import CORS_ORIGINS, DEBUG, HOST, PORT
from database import get_session, init_db
from models import (
    AuthResponse,
    CreateTodoRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    TodoResponse,
    UpdateUsernameRequest,
    UpdateUsernameResponse,
    VerifyOTPRequest,
)
from services import account_service, todo_service
from services.email_service import EmailService, get_email_service
from services.logs_service import logger
from services.otp_service import OTPLedger, get_otp_ledger


# Initialize the database
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up... Initializing database.")
    init_db()
    logger.info("Database initialized.")
    yield


app = FastAPI(
    title="Todo API",
    description="API for a personal to-do list with email verified accounts",
    version="0.1.0",
    debug=DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    return await call_next(request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        field = ".".join(str(part) for part in errors[0]["loc"] if part != "body")
        message = f"Invalid or missing field: {field}" if field else message

    logger.warning(f"Rejected {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error. Please try again."},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error. Please try again."},
    )


@app.get("/", tags=["Health"], summary="Health check")
async def root():
    return {"data": "server was running"}


auth_router = APIRouter(prefix="/auth")
todo_router = APIRouter(prefix="/api")


# Auth Routes
@auth_router.post(
    "/signup",
    response_model=SignupResponse,
    tags=["Authentication"],
    summary="Request signup",
    description="Validate the new account details and email a one-time code to confirm the address. "
    "The account is only created once the code is verified.",
    responses={
        200: {"description": "The OTP was sent"},
        400: {"description": "The input failed validation or the account already exists"},
        500: {"description": "The OTP email could not be sent"},
    },
)
async def signup(
    request: SignupRequest,
    session: Session = Depends(get_session),
    ledger: OTPLedger = Depends(get_otp_ledger),
    mailer: EmailService = Depends(get_email_service),
):
    return account_service.request_signup(request, session, ledger, mailer)


@auth_router.post(
    "/verify-otp",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    summary="Verify signup OTP",
    description="Verify the signup code and create the account.",
    responses={
        201: {"description": "The account was created. Returns a JWT and the user"},
        400: {"description": "The OTP is invalid or expired"},
    },
)
async def verify_otp(
    request: VerifyOTPRequest,
    session: Session = Depends(get_session),
    ledger: OTPLedger = Depends(get_otp_ledger),
):
    return account_service.confirm_signup(request, session, ledger)


@auth_router.post(
    "/login",
    response_model=AuthResponse,
    tags=["Authentication"],
    summary="Log in",
    responses={
        200: {"description": "Returns a JWT and the user"},
        401: {"description": "The email or password is wrong"},
    },
)
async def login(request: LoginRequest, session: Session = Depends(get_session)):
    return account_service.login(request, session)


@auth_router.post(
    "/forgot-password",
    response_model=MessageResponse,
    tags=["Authentication"],
    summary="Request password reset",
    description="Send a password reset code if an account exists for the email. "
    "The response does not reveal whether it does.",
)
async def forgot_password(
    request: ForgotPasswordRequest,
    session: Session = Depends(get_session),
    ledger: OTPLedger = Depends(get_otp_ledger),
    mailer: EmailService = Depends(get_email_service),
):
    return account_service.request_password_reset(request, session, ledger, mailer)


@auth_router.post(
    "/verify-reset-otp",
    response_model=MessageResponse,
    tags=["Authentication"],
    summary="Verify password reset OTP",
    responses={
        200: {"description": "The OTP is valid"},
        400: {"description": "The OTP is invalid or expired"},
    },
)
async def verify_reset_otp(
    request: VerifyOTPRequest,
    ledger: OTPLedger = Depends(get_otp_ledger),
):
    return account_service.confirm_reset_otp(request, ledger)


@auth_router.post(
    "/reset-password",
    response_model=MessageResponse,
    tags=["Authentication"],
    summary="Reset password",
    responses={
        200: {"description": "The password was updated"},
        400: {"description": "The OTP is invalid or the new password is too short"},
        404: {"description": "The account does not exist"},
    },
)
async def reset_password(
    request: ResetPasswordRequest,
    session: Session = Depends(get_session),
    ledger: OTPLedger = Depends(get_otp_ledger),
):
    return account_service.finalize_password_reset(request, session, ledger)


@auth_router.put(
    "/update-username",
    response_model=UpdateUsernameResponse,
    tags=["Authentication"],
    summary="Update username",
    description="Change the display name and return a token carrying it.",
    responses={
        400: {"description": "The username is invalid or taken"},
        401: {"description": "The JWT is missing or invalid"},
        404: {"description": "The account does not exist"},
    },
)
async def update_username(
    request: UpdateUsernameRequest,
    token: TokenPayload = Depends(require_auth),
    session: Session = Depends(get_session),
):
    return account_service.update_username(request, token, session)


# Todo Routes
@todo_router.get(
    "/todos",
    response_model=List[TodoResponse],
    tags=["Todos"],
    summary="List pending todos",
)
async def get_todos(
    token: TokenPayload = Depends(require_auth),
    session: Session = Depends(get_session),
):
    return todo_service.list_pending_todos(session, token.user_id)


@todo_router.post(
    "/todos",
    response_model=TodoResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Todos"],
    summary="Create todo",
)
async def create_todo(
    request: CreateTodoRequest,
    token: TokenPayload = Depends(require_auth),
    session: Session = Depends(get_session),
):
    return todo_service.create_todo(session, token.user_id, request)


@todo_router.put(
    "/todos/{todo_id}",
    response_model=TodoResponse,
    tags=["Todos"],
    summary="Mark todo as done",
    responses={404: {"description": "The todo does not exist or belongs to another user"}},
)
async def update_todo(
    todo_id: int,
    token: TokenPayload = Depends(require_auth),
    session: Session = Depends(get_session),
):
    return todo_service.mark_todo_done(session, token.user_id, todo_id)


@todo_router.delete(
    "/todos/{todo_id}",
    response_model=MessageResponse,
    tags=["Todos"],
    summary="Delete todo",
    responses={404: {"description": "The todo does not exist or belongs to another user"}},
)
async def delete_todo(
    todo_id: int,
    token: TokenPayload = Depends(require_auth),
    session: Session = Depends(get_session),
):
    return todo_service.delete_todo(session, token.user_id, todo_id)


@todo_router.post(
    "/send-todos",
    response_model=MessageResponse,
    tags=["Todos"],
    summary="Email todo list",
    description="Send all of the user's todos, grouped by pending and completed, to their email.",
    responses={
        400: {"description": "The user has no todos"},
        500: {"description": "The email could not be sent"},
    },
)
async def send_todos(
    token: TokenPayload = Depends(require_auth),
    session: Session = Depends(get_session),
    mailer: EmailService = Depends(get_email_service),
):
    return todo_service.send_todos_to_email(session, token, mailer)


# Include routers in the app
app.include_router(auth_router)
app.include_router(todo_router)


def main():
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
