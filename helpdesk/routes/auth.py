"""Demo auth endpoints (fixed credentials and codes, no sessions)."""

from fastapi import APIRouter, Depends

from helpdesk.deps import get_auth
from helpdesk.models import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyCodeRequest,
)
from helpdesk.services.auth import DemoAuth

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
def login(payload: LoginRequest, auth: DemoAuth = Depends(get_auth)) -> dict:
    return auth.login(payload.email, payload.password)


@router.post("/signup", status_code=201)
def signup(payload: SignupRequest, auth: DemoAuth = Depends(get_auth)) -> dict:
    return auth.signup(payload.email, payload.password, payload.full_name, payload.username)


@router.post("/verify-email")
def verify_email(payload: VerifyCodeRequest, auth: DemoAuth = Depends(get_auth)) -> dict:
    return auth.verify_email(payload.email, payload.code)


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, auth: DemoAuth = Depends(get_auth)) -> dict:
    return auth.forgot_password(payload.email)


@router.post("/verify-reset-code")
def verify_reset_code(payload: VerifyCodeRequest, auth: DemoAuth = Depends(get_auth)) -> dict:
    return auth.verify_reset_code(payload.email, payload.code)


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, auth: DemoAuth = Depends(get_auth)) -> dict:
    return auth.reset_password(payload.email, payload.code, payload.new_password)
