"""
Per-plugin API for sign-in. Mounted at /api/auth/.
- /signin: redirect to Google consent.
- /callback/google: finish the OAuth flow and open a session.
- /signout, /session.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from aulux.core.errors import InvalidRequestError
from aulux.core.sessions import CurrentSession, session_dependency

logger = logging.getLogger(__name__)

STATE_COOKIE = "aulux_oauth_state"
STATE_MAX_AGE = 600


def get_router(aulux_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/auth."""
    router = APIRouter(tags=["Auth"])
    sessions = aulux_app.sessions
    require_session = session_dependency(sessions)

    def _secure() -> bool:
        redirect_uri = aulux_app.config.section("auth").get("redirect_uri") or ""
        return redirect_uri.startswith("https://")

    @router.get("/signin")
    def signin() -> RedirectResponse:
        url, state = aulux_app.oauth.authorization_url()
        response = RedirectResponse(url, status_code=302)
        response.set_cookie(
            STATE_COOKIE, state, max_age=STATE_MAX_AGE, httponly=True, samesite="lax", secure=_secure()
        )
        return response

    @router.get("/callback/google")
    def callback(request: Request) -> RedirectResponse:
        if request.query_params.get("error"):
            raise InvalidRequestError(f"Google sign-in failed: {request.query_params.get('error')}")
        expected = request.cookies.get(STATE_COOKIE)
        state = request.query_params.get("state")
        if not expected or not state or state != expected:
            raise InvalidRequestError("Invalid OAuth state")

        auth_config = aulux_app.config.section("auth")
        # Rebuild from the configured redirect URI so a TLS-terminating proxy does not change the scheme
        authorization_response = f"{auth_config.get('redirect_uri')}?{request.url.query}"
        identity = aulux_app.oauth.exchange(state, authorization_response)

        current = sessions.create(
            identity.email,
            identity.name,
            identity.access_token,
            identity.refresh_token,
            identity.expires_at,
        )
        response = RedirectResponse(auth_config.get("post_login_redirect") or "/", status_code=302)
        response.set_cookie(
            sessions.cookie_name,
            current.id,
            max_age=sessions.max_age,
            httponly=True,
            samesite="lax",
            secure=_secure(),
        )
        response.delete_cookie(STATE_COOKIE)
        return response

    @router.post("/signout")
    def signout(request: Request, response: Response) -> Dict[str, Any]:
        session_id = request.cookies.get(sessions.cookie_name)
        if session_id:
            sessions.destroy(session_id)
        response.delete_cookie(sessions.cookie_name)
        return {"success": True}

    @router.get("/session")
    def session(current: CurrentSession = Depends(require_session)) -> Dict[str, Any]:
        return {
            "user": {"email": current.email, "name": current.name, "role": current.role},
            "expiresAt": current.expires_at.isoformat() if current.expires_at else None,
        }

    return router
