"""
FastAPI routes for the OAuth bridge.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from authbridge.core.errors import FlowError, Unauthenticated
from authbridge.dependencies import get_cookie_issuer, get_silent_flow_service
from authbridge.schemas import (
    RefreshResponse,
    SilentFlowResponse,
    UserInfoResponse,
    UserProfile,
)
from authbridge.services import CookieIssuer, SilentFlowService
from authbridge.services.cookies import REFRESH_TOKEN_COOKIE

router = APIRouter()
logger = logging.getLogger(__name__)


def _error_response(exc: FlowError, cookies: CookieIssuer) -> JSONResponse:
    response = JSONResponse(
        status_code=int(exc.status_code), content={"detail": exc.to_detail()}
    )
    return cookies.apply(response)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/auth/oauth/start-silent",
    response_model=SilentFlowResponse,
    status_code=HTTPStatus.OK,
)
async def start_silent_flow(
    request: Request,
    service: Annotated[SilentFlowService, Depends(get_silent_flow_service)],
    cookies: Annotated[CookieIssuer, Depends(get_cookie_issuer)],
) -> JSONResponse:
    """
    Obtain Hydra tokens for the caller's Kratos session without user interaction.

    Tokens are returned only as HttpOnly cookies.
    """
    try:
        expires_in = await service.start(request.headers.get("cookie", ""), cookies)
    except FlowError as exc:
        if not isinstance(exc, Unauthenticated):
            logger.error("Silent OAuth2 flow failed: %s", exc.kind)
        return _error_response(exc, cookies)

    body = SilentFlowResponse(expires_in=expires_in)
    return cookies.apply(JSONResponse(content=body.model_dump()))


@router.post(
    "/auth/oauth/refresh",
    response_model=RefreshResponse,
    status_code=HTTPStatus.OK,
)
async def refresh_tokens(
    request: Request,
    service: Annotated[SilentFlowService, Depends(get_silent_flow_service)],
    cookies: Annotated[CookieIssuer, Depends(get_cookie_issuer)],
) -> JSONResponse:
    """Rotate the Hydra access token using the refresh token cookie."""
    refresh_token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not refresh_token:
        # Kratos-only sessions legitimately carry no Hydra tokens.
        body = RefreshResponse(
            success=False,
            message="No refresh token available - this is expected for Kratos-only sessions",
        )
        return JSONResponse(content=body.model_dump())

    try:
        expires_in = await service.refresh(refresh_token, cookies)
    except FlowError as exc:
        logger.warning("Token refresh failed: %s", exc.message)
        return _error_response(exc, cookies)

    body = RefreshResponse(success=True, expires_in=expires_in)
    return cookies.apply(JSONResponse(content=body.model_dump()))


@router.get(
    "/auth/oauth/me",
    response_model=UserInfoResponse,
    status_code=HTTPStatus.OK,
)
async def current_user(
    request: Request,
    service: Annotated[SilentFlowService, Depends(get_silent_flow_service)],
) -> UserInfoResponse:
    """Return the OIDC profile behind a Hydra bearer token."""
    auth_header = request.headers.get("authorization", "")
    scheme, _, access_token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not access_token.strip():
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Bearer token required",
        )

    try:
        user = await service.userinfo(access_token.strip())
    except FlowError as exc:
        raise HTTPException(
            status_code=int(exc.status_code),
            detail=exc.to_detail(),
        ) from exc

    return UserInfoResponse(user=UserProfile(**user))


@router.get("/auth/oauth/hydra-logout", response_class=RedirectResponse)
async def hydra_logout(
    request: Request,
    service: Annotated[SilentFlowService, Depends(get_silent_flow_service)],
    cookies: Annotated[CookieIssuer, Depends(get_cookie_issuer)],
    logout_challenge: Optional[str] = None,
) -> RedirectResponse:
    """Hydra's logout endpoint: end the sessions and send the browser onwards."""
    if not logout_challenge:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing logout_challenge parameter",
        )

    target = await service.logout(
        logout_challenge, request.headers.get("cookie", ""), cookies
    )
    return cookies.apply(RedirectResponse(target, status_code=int(HTTPStatus.FOUND)))


__all__ = ["router"]
