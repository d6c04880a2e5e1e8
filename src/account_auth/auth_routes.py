"""
Authentication API routes
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .auth import Subject, clear_session_cookie, get_current_subject, set_session_cookie
from .auth_service import AuthService, FlowResult
from .database import get_db
from .store import UserStore

router = APIRouter(prefix="/api/auth", tags=["authentication"])


# Fields are optional so that missing values reach the flows and fail as
# VALIDATION with the flow's own message.
class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyAccountRequest(BaseModel):
    token: Optional[str] = None
    email: Optional[str] = None


class SignInRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ResetTokenRequest(BaseModel):
    email: Optional[str] = None


class VerifyResetTokenRequest(BaseModel):
    email: Optional[str] = None
    resetToken: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    email: Optional[str] = None
    newPassword: Optional[str] = None


class FlowResponse(BaseModel):
    success: bool
    message: Optional[str] = None


def get_auth_service(request: Request, db: Session = Depends(get_db)) -> AuthService:
    """Build the account flows over this request's store session"""
    state = request.app.state
    return AuthService(
        store=UserStore(db),
        issuer=state.token_issuer,
        hasher=state.password_hasher,
        frontend_url=state.config.FRONTEND_URL,
        clock=state.clock,
        require_reset_authorization=state.config.REQUIRE_RESET_AUTHORIZATION,
    )


def apply_result(
    result: FlowResult,
    request: Request,
    response: Response,
    background_tasks: Optional[BackgroundTasks] = None,
) -> dict:
    """Turn a flow outcome into cookie directives, queued mail and a response body"""
    config = request.app.state.config
    if result.session_token:
        set_session_cookie(response, result.session_token, config)
    if result.clear_session:
        clear_session_cookie(response, config)
    if result.outbound is not None and background_tasks is not None:
        # Delivered after the response is sent; failures stay in the notifier
        background_tasks.add_task(request.app.state.notifier.deliver, result.outbound)
    return result.body()


# Handlers doing bcrypt or store work are plain functions and run in the
# threadpool. A missing body is an empty payload, which each
# flow rejects with its own VALIDATION message.
@router.post("/register", response_model=FlowResponse, response_model_exclude_none=True)
def register(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    payload: Optional[RegisterRequest] = None,
    service: AuthService = Depends(get_auth_service),
):
    """Create an unverified account and mail a verification link"""
    payload = payload or RegisterRequest()
    result = service.register(payload.name, payload.email, payload.password)
    return apply_result(result, request, response, background_tasks)


@router.post("/account-verify", response_model=FlowResponse, response_model_exclude_none=True)
def account_verify(
    request: Request,
    response: Response,
    payload: Optional[VerifyAccountRequest] = None,
    service: AuthService = Depends(get_auth_service),
):
    payload = payload or VerifyAccountRequest()
    result = service.verify_account(payload.token, payload.email)
    return apply_result(result, request, response)


@router.post("/signin", response_model=FlowResponse, response_model_exclude_none=True)
def signin(
    request: Request,
    response: Response,
    payload: Optional[SignInRequest] = None,
    service: AuthService = Depends(get_auth_service),
):
    """Login with email and password"""
    payload = payload or SignInRequest()
    result = service.sign_in(payload.email, payload.password)
    return apply_result(result, request, response)


@router.post("/logout", response_model=FlowResponse, response_model_exclude_none=True)
async def logout(request: Request, response: Response):
    """Clear the session cookie. Tokens are stateless and stay valid until expiry."""
    return apply_result(AuthService.logout(), request, response)


@router.post("/is-auth", response_model=FlowResponse, response_model_exclude_none=True)
async def is_auth(
    request: Request,
    response: Response,
    subject: Subject = Depends(get_current_subject),
):
    return apply_result(AuthService.is_authenticated(subject), request, response)


@router.post("/send-reset-token", response_model=FlowResponse, response_model_exclude_none=True)
def send_reset_token(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    payload: Optional[ResetTokenRequest] = None,
    service: AuthService = Depends(get_auth_service),
):
    payload = payload or ResetTokenRequest()
    result = service.request_password_reset(payload.email)
    return apply_result(result, request, response, background_tasks)


@router.post("/verify-reset-token", response_model=FlowResponse, response_model_exclude_none=True)
def verify_reset_token(
    request: Request,
    response: Response,
    payload: Optional[VerifyResetTokenRequest] = None,
    service: AuthService = Depends(get_auth_service),
):
    payload = payload or VerifyResetTokenRequest()
    result = service.verify_reset_token(payload.email, payload.resetToken)
    return apply_result(result, request, response)


@router.post("/reset-password", response_model=FlowResponse, response_model_exclude_none=True)
def reset_password(
    request: Request,
    response: Response,
    payload: Optional[ResetPasswordRequest] = None,
    service: AuthService = Depends(get_auth_service),
):
    payload = payload or ResetPasswordRequest()
    result = service.reset_password(payload.email, payload.newPassword)
    return apply_result(result, request, response)
