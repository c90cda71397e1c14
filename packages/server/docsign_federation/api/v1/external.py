"""
Partner federation endpoints.

- Partner back-channel (shared secret): generate-token, authorize,
  authorize-business, verify, remove-member
- Browser-facing: exchange-token (JSON) and the /auth/external sign-in page
"""

from __future__ import annotations

from html import escape
from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import HTMLResponse, RedirectResponse

from docsign_federation.core.config import Settings
from docsign_federation.core.database import get_session
from docsign_federation.core.errors import FederationError, RequestValidationFailed
from docsign_federation.core.security import (
    issue_session,
    require_back_channel_secret,
    validate_external_secret,
)
from docsign_federation.services.federation import FederationOutcome, federate
from docsign_federation.services.notifier import PartnerNotifier
from docsign_federation.services.organizations import remove_member
from docsign_federation.services.roles import parse_external_role
from docsign_federation.services.token_store import PendingClaim, TokenStore
from docsign_federation.services.users import describe_user, resolve_external_user

from docsign_federation_shared.schemas.external import (
    AuthorizeRequest,
    AuthorizeResponse,
    BusinessAuthorizeRequest,
    ExchangeTokenRequest,
    FederatedSessionResponse,
    GenerateTokenResponse,
    RemoveMemberRequest,
    RemoveMemberResponse,
    UserSummary,
    VerifyRequest,
    VerifyResponse,
)

log = structlog.get_logger()
router = APIRouter()
page_router = APIRouter()

SIGN_IN_PATH = "/signin"
EXCHANGE_PAGE_PATH = "/auth/external"
FALLBACK_ERROR_MESSAGE = "We were unable to complete authentication."


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.token_store


def get_notifier(request: Request) -> PartnerNotifier:
    return request.app.state.notifier


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _business_claim(body: BusinessAuthorizeRequest, settings: Settings) -> PendingClaim:
    """Secret first, then required fields, then role."""
    validate_external_secret(body.external_secret, settings.external_auth_secret)

    if (
        not _present(body.email)
        or not body.name
        or not body.business_id
        or not body.business_name
    ):
        raise RequestValidationFailed(
            "email, name, businessId, and businessName are required"
        )

    return PendingClaim(
        email=body.email,
        name=body.name,
        business_id=body.business_id,
        business_name=body.business_name,
        role=parse_external_role(body.role),
    )


async def _complete_federation(
    claim: PendingClaim,
    response: Response,
    background_tasks: BackgroundTasks,
    notifier: PartnerNotifier,
    session: AsyncSession,
    settings: Settings,
) -> FederationOutcome:
    outcome = await federate(claim, session, settings)
    issue_session(response, outcome.user.id, settings, outcome.organisation.id)
    if outcome.api_token:
        # Runs after the response is sent; failures never reach the caller.
        background_tasks.add_task(notifier.notify, outcome.business_id, outcome.api_token)
    return outcome


# ---------------------------------------------------------------------------
# Partner back-channel
# ---------------------------------------------------------------------------

@router.post("/generate-token", response_model=GenerateTokenResponse)
async def generate_token(
    body: BusinessAuthorizeRequest,
    settings: Settings = Depends(get_app_settings),
    store: TokenStore = Depends(get_token_store),
):
    """Issue a one-time token the partner hands to the user's browser."""
    claim = _business_claim(body, settings)
    token = await store.issue(claim)
    return GenerateTokenResponse(
        token=token,
        redirect_url=f"{EXCHANGE_PAGE_PATH}?token={token}",
    )


@router.post("/authorize", response_model=AuthorizeResponse)
async def authorize(
    body: AuthorizeRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """Sign a partner user in without any tenant context."""
    validate_external_secret(body.external_secret, settings.external_auth_secret)
    if not _present(body.email) or not body.name:
        raise RequestValidationFailed("Email and name are required")

    user = await resolve_external_user(body.email, body.name, session)
    issue_session(response, user.id, settings)
    log.info("external.authorized", user_id=str(user.id))
    return AuthorizeResponse(
        user=UserSummary(id=user.id, email=user.email, name=user.name)
    )


@router.post("/authorize-business", response_model=FederatedSessionResponse)
async def authorize_business(
    body: BusinessAuthorizeRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    notifier: PartnerNotifier = Depends(get_notifier),
):
    """Sign in and provision in one back-channel call (no token round-trip)."""
    claim = _business_claim(body, settings)
    outcome = await _complete_federation(
        claim, response, background_tasks, notifier, session, settings
    )
    return outcome.to_response()


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    body: VerifyRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """Does this email have an account, and which tenants is it in?"""
    require_back_channel_secret(body.external_secret, settings.external_auth_secret)
    if not _present(body.email):
        raise RequestValidationFailed("email is required")

    user = await describe_user(body.email, session)
    return VerifyResponse(exists=user is not None, user=user)


@router.post("/remove-member", response_model=RemoveMemberResponse)
async def remove_member_endpoint(
    body: RemoveMemberRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """Remove a user from a business's organisation. Idempotent."""
    require_back_channel_secret(body.external_secret, settings.external_auth_secret)
    if not _present(body.email) or not body.business_id:
        raise RequestValidationFailed("email and businessId are required")

    message = await remove_member(body.email, body.business_id, session)
    return RemoveMemberResponse(message=message)


# ---------------------------------------------------------------------------
# Token exchange
# ---------------------------------------------------------------------------

@router.post("/exchange-token", response_model=FederatedSessionResponse)
async def exchange_token(
    body: ExchangeTokenRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    store: TokenStore = Depends(get_token_store),
    notifier: PartnerNotifier = Depends(get_notifier),
):
    """Consume a one-time token and establish the user's session."""
    if not body.token:
        raise RequestValidationFailed("Token is required")

    claim = await store.exchange(body.token)
    outcome = await _complete_federation(
        claim, response, background_tasks, notifier, session, settings
    )
    return outcome.to_response()


_FAILURE_PAGE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>Unable to sign you in</title></head>
<body>
  <main>
    <h1>Unable to sign you in</h1>
    <p>{message}</p>
    <p><a href="{sign_in}">Go to sign in</a></p>
  </main>
</body>
</html>
"""


def render_failure_page(message: Optional[str], status_code: int) -> HTMLResponse:
    return HTMLResponse(
        _FAILURE_PAGE.format(
            message=escape(message or FALLBACK_ERROR_MESSAGE),
            sign_in=SIGN_IN_PATH,
        ),
        status_code=status_code,
    )


@page_router.get(EXCHANGE_PAGE_PATH, include_in_schema=False)
async def external_sign_in_page(
    background_tasks: BackgroundTasks,
    token: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    store: TokenStore = Depends(get_token_store),
    notifier: PartnerNotifier = Depends(get_notifier),
):
    """Browser landing page for the partner redirect."""
    if not token:
        return RedirectResponse(SIGN_IN_PATH, status_code=302)

    redirect = RedirectResponse("/", status_code=302)
    try:
        claim = await store.exchange(token)
        outcome = await _complete_federation(
            claim, redirect, background_tasks, notifier, session, settings
        )
    except FederationError as exc:
        log.info("external.sign_in_failed", status=exc.status_code)
        return render_failure_page(exc.message, exc.status_code)

    redirect.headers["location"] = outcome.documents_url or outcome.redirect_url or "/"
    return redirect
