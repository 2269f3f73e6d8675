import os
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from api.dependencies import SESSION_COOKIE, get_session_provider, get_session_store
from auth.google_oauth import OAuthConfigError
from auth.session_provider import SessionProvider
from storage.session_store import SessionStore

router = APIRouter(prefix="/auth")
logger = logging.getLogger(__name__)

SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")
LOGIN_URL = os.getenv("LOGIN_URL", f"{SITE_URL}/login")
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in {"1", "true", "yes"}


class CredentialsIn(BaseModel):
    email: str
    password: str


class ProfileIn(BaseModel):
    avatar_url: Optional[str] = None
    full_name: Optional[str] = None


def _set_session_cookie(response: Response, store: SessionStore, session_id: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        store.encode_session_id(session_id),
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


def _login_redirect(error: Optional[str] = None) -> RedirectResponse:
    target = LOGIN_URL if not error else f"{LOGIN_URL}?error={quote(error)}"
    return RedirectResponse(target, status_code=307)


def _user_payload(provider: SessionProvider) -> Optional[dict]:
    user = provider.user
    return user.model_dump() if user else None


@router.post("/login")
async def login(
    payload: CredentialsIn,
    provider: SessionProvider = Depends(get_session_provider),
    store: SessionStore = Depends(get_session_store),
):
    result = await provider.sign_in(payload.email, payload.password)
    if not result.ok:
        return JSONResponse({"error": result.error}, status_code=400)

    response = JSONResponse({"user": _user_payload(provider)})
    _set_session_cookie(response, store, provider.session_id)
    return response


@router.post("/signup")
async def signup(
    payload: CredentialsIn,
    provider: SessionProvider = Depends(get_session_provider),
):
    result = await provider.sign_up(payload.email, payload.password)
    if not result.ok:
        return JSONResponse({"error": result.error}, status_code=400)
    return {
        "error": None,
        "message": "Check your email to confirm your account.",
    }


@router.post("/logout")
async def logout(provider: SessionProvider = Depends(get_session_provider)):
    await provider.sign_out()
    response = RedirectResponse(LOGIN_URL, status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/google/login")
async def google_login(provider: SessionProvider = Depends(get_session_provider)):
    """Initiates the OAuth2 flow - redirects to Google."""
    try:
        authorization_url = provider.sign_in_with_google()
    except OAuthConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

    # Redirect the browser directly to Google's OAuth page
    return RedirectResponse(authorization_url, status_code=307)


@router.get("/callback")
async def oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    provider: SessionProvider = Depends(get_session_provider),
    store: SessionStore = Depends(get_session_store),
):
    """Handles the OAuth2 callback."""
    if error:
        logger.error(f"OAuth error: {error} {error_description or ''}")
        return _login_redirect(error_description or error)

    if not code or not state:
        return _login_redirect("Missing authorization code")

    result = await provider.complete_google_sign_in(code, state)
    if not result.ok:
        logger.error(f"OAuth callback failed: {result.error}")
        return _login_redirect(result.error)

    response = RedirectResponse(SITE_URL, status_code=307)
    _set_session_cookie(response, store, provider.session_id)
    return response


@router.get("/session")
async def current_session(provider: SessionProvider = Depends(get_session_provider)) -> dict:
    await provider.resolve()
    return {"user": _user_payload(provider), "loading": provider.loading}


@router.patch("/profile")
async def update_profile(
    payload: ProfileIn,
    provider: SessionProvider = Depends(get_session_provider),
):
    if provider.session is None:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    result = await provider.update_profile(
        avatar_url=payload.avatar_url, full_name=payload.full_name
    )
    if not result.ok:
        return JSONResponse({"error": result.error}, status_code=400)
    return {"error": None, "user": _user_payload(provider)}
