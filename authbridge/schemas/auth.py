"""Schemas returned by the OAuth bridge endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SilentFlowResponse(BaseModel):
    """Body returned once Hydra tokens have been stored in cookies."""

    success: bool = True
    message: str = "OAuth2 tokens created successfully"
    expires_in: Optional[int] = Field(
        None, description="Lifetime of the issued access token in seconds."
    )


class RefreshResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    expires_in: Optional[int] = None


class UserProfile(BaseModel):
    id: str
    email: str = ""
    email_verified: bool = False
    first_name: str = ""
    last_name: str = ""
    avatar: Optional[str] = None
    roles: list[str] = Field(default_factory=list)


class UserInfoResponse(BaseModel):
    success: bool = True
    user: UserProfile


__all__ = ["RefreshResponse", "SilentFlowResponse", "UserInfoResponse", "UserProfile"]
