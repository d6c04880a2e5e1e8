"""
OAuth authentication routes for Google
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from .auth_routes import FlowResponse, apply_result, get_auth_service
from .auth_service import AuthService
from .exceptions import AuthError, ErrorKind
from .oauth import GoogleOAuthClient, GoogleOAuthService

router = APIRouter(prefix="/api/auth/oauth", tags=["oauth"])


def get_google_client(request: Request) -> GoogleOAuthClient:
    client = request.app.state.google_client
    if client is None:
        raise AuthError(
            ErrorKind.UNAVAILABLE,
            "Google OAuth is not configured. Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REDIRECT_URI."
        )
    return client


def get_google_service(
    client: GoogleOAuthClient = Depends(get_google_client),
    accounts: AuthService = Depends(get_auth_service),
) -> GoogleOAuthService:
    return GoogleOAuthService(client, accounts)


@router.api_route("/google/login", methods=["GET", "POST"])
async def google_login(client: GoogleOAuthClient = Depends(get_google_client)):
    """Initiate Google OAuth login"""
    return RedirectResponse(url=client.authorization_url(), status_code=302)


@router.api_route(
    "/google/callback",
    methods=["GET", "POST"],
    response_model=FlowResponse,
    response_model_exclude_none=True,
)
async def google_callback(
    request: Request,
    response: Response,
    code: Optional[str] = None,
    service: GoogleOAuthService = Depends(get_google_service),
):
    """Handle Google OAuth callback"""
    result = await service.complete_login(code)
    return apply_result(result, request, response)
