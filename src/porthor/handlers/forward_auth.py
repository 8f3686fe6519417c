"""Handlers for the ForwardAuth routes (``/api/auth``).

These routes are called by the reverse proxy before every request to a
protected application. A ``200`` response allows the request, and the proxy
copies the identity headers in the response into the request it forwards. Any
other response, here always a ``302`` redirect to the login page, is returned
to the browser instead.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Response
from fastapi.responses import RedirectResponse
from safir.slack.webhook import SlackRouteErrorHandler

from ..dependencies.context import RequestContext, context_dependency
from ..exceptions import InvalidHeaderValueError
from ..models.results import Authenticated, Unauthenticated
from ..services.headers import build_passthrough_headers

router = APIRouter(route_class=SlackRouteErrorHandler)

_CACHE_CONTROL = "no-cache, no-store"
"""Authorization decisions must never be cached."""

__all__ = ["router"]


@router.get(
    "/api/auth",
    description=(
        "Meant to be used as a ForwardAuth handler by the reverse proxy."
        " Returns 200 with identity headers if the request carries a valid"
        " session, possibly renewing it, and otherwise redirects to the"
        " login page."
    ),
    responses={
        200: {"description": "Authenticated"},
        302: {"description": "Redirect to login page"},
    },
    summary="Authenticate request",
    tags=["internal"],
)
@router.get("/auth", include_in_schema=False)
async def get_auth(
    *,
    x_forwarded_host: Annotated[
        str | None, Header(description="Host of the guarded request")
    ] = None,
    x_forwarded_proto: Annotated[
        str | None, Header(description="Scheme of the guarded request")
    ] = None,
    x_forwarded_uri: Annotated[
        str | None, Header(description="Path and query of guarded request")
    ] = None,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> Response:
    try:
        original_url = build_original_url(
            context, x_forwarded_host, x_forwarded_proto, x_forwarded_uri
        )
        context.rebind_logger(original_url=original_url)
        session_service = context.factory.create_session_service()
        result = await session_service.authenticate(context.request.cookies)
        match result:
            case Authenticated():
                return build_success_response(context, result)
            case Unauthenticated(state=state, error=error):
                context.logger.info(
                    "Redirecting unauthenticated request to login",
                    session_state=state.value,
                    error_kind=error.value,
                )
                return build_login_redirect(context, original_url)
    except InvalidHeaderValueError as e:
        context.logger.warning("Cannot encode identity", error=str(e))
        return build_login_redirect(context, original_url)
    except Exception:
        context.logger.exception("Unexpected error during authentication")
        fallback_url = build_fallback_url(
            x_forwarded_host, x_forwarded_proto, x_forwarded_uri
        )
        return build_login_redirect(context, fallback_url)


@router.head(
    "/api/auth",
    description=(
        "Always returns 200 without checking the session. This is a"
        " liveness probe, not an authorization decision."
    ),
    summary="Liveness probe",
    tags=["internal"],
)
@router.head("/auth", include_in_schema=False)
async def head_auth() -> Response:
    return Response(status_code=200)


def build_original_url(
    context: RequestContext,
    host: str | None,
    proto: str | None,
    uri: str | None,
) -> str:
    """Reconstruct the URL of the request guarded by the proxy.

    Parameters
    ----------
    context
        Context of the incoming request.
    host
        Value of ``X-Forwarded-Host``.
    proto
        Value of ``X-Forwarded-Proto``, defaulting to ``https``.
    uri
        Value of ``X-Forwarded-Uri``, defaulting to ``/``.

    Returns
    -------
    str
        The guarded URL, or the URL of this request if the proxy did not
        send the forwarding headers.
    """
    if not host:
        return str(context.request.url)
    return format_forwarded_url(host, proto, uri)


def build_fallback_url(
    host: str | None, proto: str | None, uri: str | None
) -> str:
    """Best-effort guarded URL used after an unexpected error.

    Only string formatting is done here, so this cannot fail.
    """
    if not host:
        return "/"
    return format_forwarded_url(host, proto, uri)


def format_forwarded_url(host: str, proto: str | None, uri: str | None) -> str:
    """Format the guarded URL from the forwarding headers."""
    # Proxy chains may send comma-separated lists. The first is the client.
    host = host.split(",")[0].strip()
    scheme = proto.split(",")[0].strip() if proto else "https"
    return f"{scheme or 'https'}://{host}{uri or '/'}"


def build_login_redirect(
    context: RequestContext, original_url: str
) -> RedirectResponse:
    """Construct the redirect denying a request.

    No cookies are cleared. A missing or expired session is not a logout.
    """
    login_url = context.config.build_login_url(redirect=original_url)
    return RedirectResponse(
        login_url, status_code=302, headers={"Cache-Control": _CACHE_CONTROL}
    )


def build_success_response(
    context: RequestContext, result: Authenticated
) -> Response:
    """Construct the response allowing a request.

    The following headers are included:

    X-User-Id, X-User-Email, X-User-Name, X-User-Name-Encoding
        The identity of the authenticated user.
    Cookie
        The input ``Cookie`` headers, unchanged.
    Set-Cookie
        If the session was refreshed, the renewed session cookie and the
        renewed access token cookie.

    Parameters
    ----------
    context
        Context of the incoming request.
    result
        Successful authentication result.

    Returns
    -------
    fastapi.Response
        Response to return to the proxy.

    Raises
    ------
    InvalidHeaderValueError
        Raised if the identity cannot be safely encoded in headers.
    """
    identity_headers = context.header_encoder.encode(result.identity)
    context.rebind_logger(
        user_id=result.identity.id, session_state=result.state.value
    )
    response = Response(status_code=200)
    response.headers["Cache-Control"] = _CACHE_CONTROL
    for header, value in identity_headers.items():
        response.headers[header] = value
    for header, value in build_passthrough_headers(context.request.headers):
        response.headers.append(header, value)
    if result.refreshed:
        cookie_manager = context.cookie_manager
        cookie_manager.issue_cookie(result.session).apply(response)
        cookie_manager.issue_access_token_cookie(result.session).apply(
            response
        )
        context.logger.info("Refreshed session")
    else:
        context.logger.debug("Authenticated request")
    return response
