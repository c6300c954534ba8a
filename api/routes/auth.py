"""
api/routes/auth.py -- Registration, login, token refresh, and logout.

Routes:
  POST /api/auth/register  -- create a user; 201
  POST /api/auth/login     -- password login; access token in body, refresh token in cookie
  GET  /api/auth/refresh   -- rotate the refresh cookie, return a new access token
  POST /api/auth/logout    -- clear the refresh cookie if present; always 200

Security:
  register and login are rate-limited per IP (LOGIN_RATE_LIMIT), refresh by
  REFRESH_RATE_LIMIT. login() in auth/accounts.py runs bcrypt on every branch.
  Cache-Control: no-store on every response that carries a token.
  Refresh failure clears the cookie before answering, so a browser holding a
  bad cookie does not keep presenting it.
"""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_LIMIT, REFRESH_LIMIT, limiter
from api.models import Envelope, LoginRequest, RegisterRequest, TokenResponse, error_response
from api.routes.common import get_user_store
from auth import accounts
from auth.tokens import (
    REFRESH_COOKIE_NAME,
    TokenVerificationError,
    clear_refresh_cookie,
    rotate,
    set_refresh_cookie,
)
from core.errors import Forbidden, Unauthenticated

# Auth policy: every route here is public. The refresh route authenticates
# with the refresh cookie, not the Authorization header.
router = APIRouter()


@router.post("/auth/register", response_model=Envelope, status_code=201)
@limiter.limit(LOGIN_LIMIT)
def register(request: Request, body: RegisterRequest) -> Envelope:
    """Create an active, non-admin account. 409 if the username or email is taken."""
    accounts.register(get_user_store(request), body.username, body.email, body.password)
    return Envelope(client_msg="Successful registration!")


@router.post("/auth/login", response_model=TokenResponse)
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, response: Response, body: LoginRequest) -> TokenResponse:
    pair = accounts.login(get_user_store(request), body.username, body.password)
    set_refresh_cookie(response, pair.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return TokenResponse(user_id=pair.user_id, access_token=pair.access_token, client_msg="Successful login!")


@router.get("/auth/refresh", response_model=TokenResponse)
@limiter.limit(REFRESH_LIMIT)
def refresh(request: Request, response: Response):
    """Exchange the refresh cookie for a new access token and a rotated cookie.

    No cookie -> 401. A cookie that fails verification -> 403 with the cookie
    cleared. The user behind the token must still exist and be active.
    """
    old_token = request.cookies.get(REFRESH_COOKIE_NAME)
    if not old_token:
        return error_response(Unauthenticated("Unauthorized.", "No refresh token cookie was presented."))

    try:
        pair = rotate(old_token)
    except TokenVerificationError as exc:
        resp = error_response(Forbidden("Forbidden.", f"Invalid refresh token: {exc}"))
        clear_refresh_cookie(resp)
        return resp

    user = get_user_store(request).get_by_id(pair.user_id)
    if user is None or not user.is_active:
        resp = error_response(
            Forbidden("Forbidden.", "The refresh token belongs to an unknown or inactive user.")
        )
        clear_refresh_cookie(resp)
        return resp

    set_refresh_cookie(response, pair.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return TokenResponse(user_id=pair.user_id, access_token=pair.access_token)


@router.post("/auth/logout", response_model=Envelope)
def logout(request: Request) -> JSONResponse:
    """Always 200. The cookie is cleared only when the browser sent one."""
    resp = JSONResponse(content=Envelope(client_msg="Logged out!").model_dump(by_alias=True))
    if request.cookies.get(REFRESH_COOKIE_NAME):
        clear_refresh_cookie(resp)
    return resp
