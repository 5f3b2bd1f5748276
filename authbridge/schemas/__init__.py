"""Public schema exports."""

from .auth import RefreshResponse, SilentFlowResponse, UserInfoResponse, UserProfile

__all__ = [
    "RefreshResponse",
    "SilentFlowResponse",
    "UserInfoResponse",
    "UserProfile",
]
