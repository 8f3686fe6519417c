"""Handler for completing a login (``/api/auth/callback``)."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from safir.slack.webhook import SlackRouteErrorHandler

from ..constants import (
    LOGIN_ERROR_NO_CODE,
    LOGIN_ERROR_NO_SESSION,
    LOGIN_ERROR_UNEXPECTED,
)
from ..dependencies.context import RequestContext, context_dependency
from ..models.results import ProviderFailure, SessionError
from ..models.session import Session

router = APIRouter(route_class=SlackRouteErrorHandler)

__all__ = ["router"]


@router.get(
    "/api/auth/callback",
    description=(
        "Exchange the authorization code returned by the identity provider"
        " for a session, set the session cookie, and redirect to the"
        " requested destination if it is allowed or to the default landing"
        " page otherwise. Errors redirect to the login page."
    ),
    responses={302: {"description": "Redirect to destination or login"}},
    summary="Complete login",
    tags=["browser"],
)
@router.post("/api/auth/callback", include_in_schema=False)
async def get_callback(
    *,
    code: Annotated[
        str | None, Query(description="Authorization code from provider")
    ] = None,
    redirect: Annotated[
        str | None,
        Query(
            title="URL to return to",
            description="User is sent here after login if it is allowed",
            examples=["https://app.example.com/"],
        ),
    ] = None,
    state: Annotated[
        str | None,
        Query(description="Used as the return URL if redirect is not set"),
    ] = None,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> RedirectResponse:
    config = context.config
    if not code:
        context.logger.warning("No authorization code in login callback")
        return _redirect(config.build_login_url(error=LOGIN_ERROR_NO_CODE))

    try:
        code_verifier = context.cookie_manager.read_code_verifier(
            context.request.cookies
        )
        provider = context.factory.create_provider()
        result = await provider.exchange_code_for_session(code, code_verifier)
    except Exception:
        context.logger.exception("Unexpected error in login callback")
        error = LOGIN_ERROR_UNEXPECTED
        return _redirect(config.build_login_url(error=error))

    match result:
        case ProviderFailure(kind=SessionError.credential_absent):
            context.logger.warning("No session returned for login code")
            error = LOGIN_ERROR_NO_SESSION
            return _redirect(config.build_login_url(error=error))
        case ProviderFailure(kind=kind, message=message):
            context.logger.warning(
                "Cannot exchange login code",
                error_kind=kind.value,
                error=message,
            )
            return _redirect(config.build_login_url(error=message))
        case Session():
            session = result

    return_url = redirect or state
    if return_url and context.redirect_policy.is_allowed(return_url):
        target = return_url
    else:
        if return_url:
            context.logger.info(
                "Ignoring disallowed redirect target",
                error_kind=SessionError.invalid_redirect_target.value,
                redirect=return_url,
            )
        target = config.default_redirect_url

    context.rebind_logger(user_id=session.user.id)
    context.logger.info("Successful login", return_url=target)
    response = _redirect(target)
    context.cookie_manager.issue_cookie(session).apply(response)
    context.cookie_manager.clear_code_verifier_cookie().apply(response)
    return response


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)
