from pydantic import BaseModel, ConfigDict


class SignupRequest(BaseModel):
    username: str
    email: str
    password: str


class VerifyOTPRequest(BaseModel):
    email: str
    otp: str


class LoginRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    email: str
    otp: str
    newPassword: str


class UpdateUsernameRequest(BaseModel):
    newUsername: str


class CreateTodoRequest(BaseModel):
    title: str
    description: str | None = None
    date: str | None = None
    time: str | None = None
    done: bool = False


class MessageResponse(BaseModel):
    message: str


class SignupResponse(BaseModel):
    message: str
    email: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: str


class AuthData(BaseModel):
    token: str
    user: UserResponse


class AuthResponse(BaseModel):
    """Response model for a successful signup confirmation or login."""

    data: AuthData


class UsernameData(BaseModel):
    username: str
    email: str
    token: str


class UpdateUsernameResponse(BaseModel):
    message: str
    data: UsernameData


class TodoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    date: str | None = None
    time: str | None = None
    done: bool
    user_id: int
