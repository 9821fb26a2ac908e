"""
Authentication routes for the admin dashboard.
The session token is returned in the body and set as an httpOnly cookie.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from typing import Optional
import logging

from portfolio_cms.dependencies import ContentContext, get_context
from portfolio_cms.schemas import Credentials, SessionResponse
from portfolio_cms.services.session_guard import SessionGuard, SessionState
from portfolio_cms.utils.jwt_auth import TOKEN_COOKIE, token_from_request
from portfolio_cms.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _guard(context: ContentContext, token: Optional[str]) -> SessionGuard:
    return SessionGuard(
        context.auth,
        token,
        login_path=context.config.LOGIN_PATH,
        public_root=context.config.PUBLIC_ROOT_PATH,
    )


@router.post("/login")
@limiter.limit(RATE_LIMITS["login"])
async def login(
    request: Request,
    response: Response,
    credentials: Credentials,
    context: ContentContext = Depends(get_context)
):
    """
    Sign in with email and password.

    Returns:
        dict: Session details and the access token

    Raises:
        HTTPException: 401 with the authentication error message if sign-in fails
    """
    guard = _guard(context, None)
    result = await guard.login(credentials.email, credentials.password)
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Login failed", "detail": result.error.message}
        )

    session = result.data
    max_age = context.config.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=session.token,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
    )
    return {
        "access_token": session.token,
        "token_type": "bearer",
        "expires_in": max_age,
        "email": session.email,
    }


@router.post("/logout")
async def logout(
    response: Response,
    token: Optional[str] = Depends(token_from_request),
    context: ContentContext = Depends(get_context)
):
    """Sign out and clear the session cookie; the client goes back to the public site."""
    guard = _guard(context, token)
    await guard.mount()
    try:
        decision = await guard.logout()
    finally:
        guard.unmount()

    response.delete_cookie(TOKEN_COOKIE)
    return {"message": "Signed out", "redirect": decision.location}


@router.get("/session", response_model=SessionResponse)
async def get_session(
    token: Optional[str] = Depends(token_from_request),
    context: ContentContext = Depends(get_context)
):
    guard = _guard(context, token)
    state = await guard.mount()
    guard.unmount()

    if state != SessionState.AUTHENTICATED:
        return SessionResponse(authenticated=False)
    return SessionResponse(
        authenticated=True,
        email=guard.session.email,
        expires_at=guard.session.expires_at,
    )
