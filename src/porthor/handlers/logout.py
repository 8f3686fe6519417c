"""Log out handler (``/api/auth/logout``)."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import urljoin

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from safir.slack.webhook import SlackRouteErrorHandler

from ..dependencies.context import RequestContext, context_dependency
from ..models.results import ProviderFailure, SessionError

router = APIRouter(route_class=SlackRouteErrorHandler)

__all__ = ["router"]


@router.get(
    "/api/auth/logout",
    description=(
        "Invalidate the session at the identity provider, clear the session"
        " cookie, and redirect the user."
    ),
    responses={302: {"description": "Redirect to landing page"}},
    summary="Log out",
    tags=["browser"],
)
@router.post("/api/auth/logout", include_in_schema=False)
async def get_logout(
    *,
    redirect: Annotated[
        str | None,
        Query(
            title="URL to return to",
            description=(
                "User is sent here after logout if it is an allowed URL or a"
                " local path. Otherwise, the user is sent to the login page."
            ),
            examples=["https://app.example.com/"],
        ),
    ] = None,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> RedirectResponse:
    """Log out and redirect the user.

    Failure to invalidate the session at the provider is logged but does not
    stop the logout. The cookies are cleared on every path.
    """
    return_url = context.config.login_url
    try:
        return_url = get_return_url(context, redirect)
        await sign_out(context)
    except Exception:
        context.logger.exception("Unexpected error during logout")
    response = RedirectResponse(return_url, 302)
    context.cookie_manager.clear_cookie().apply(response)
    context.cookie_manager.clear_access_token_cookie().apply(response)
    return response


def get_return_url(context: RequestContext, redirect: str | None) -> str:
    """Determine where to send the user after logout.

    Parameters
    ----------
    context
        Context of the incoming request.
    redirect
        Requested destination, if any.

    Returns
    -------
    str
        The requested destination if it is allowed by the redirect policy or
        is a local path, which is resolved against the base URL. Otherwise,
        the login page.
    """
    config = context.config
    if not redirect:
        return config.login_url
    if context.redirect_policy.is_allowed(redirect):
        return redirect
    if context.redirect_policy.is_local_path(redirect):
        return urljoin(str(config.base_url), redirect)
    context.logger.info(
        "Ignoring disallowed redirect target",
        error_kind=SessionError.invalid_redirect_target.value,
        redirect=redirect,
    )
    return config.login_url


async def sign_out(context: RequestContext) -> None:
    """Invalidate the session in the request cookies at the provider."""
    session = context.cookie_manager.read_session(context.request.cookies)
    if not session:
        context.logger.info("Logout of already-logged-out session")
        return
    context.rebind_logger(user_id=session.user.id)
    provider = context.factory.create_provider()
    match await provider.sign_out(session.access_token):
        case ProviderFailure(kind=kind, message=message):
            context.logger.warning(
                "Unable to sign out at provider",
                error_kind=kind.value,
                error=message,
            )
        case None:
            context.logger.info("Successful logout")
