"""Flow domain model exports."""

from .flow import (
    AdminResult,
    AuthorizationCode,
    Challenge,
    FlowState,
    FlowStep,
    Identity,
    PkcePair,
    TokenResult,
)

__all__ = [
    "AdminResult",
    "AuthorizationCode",
    "Challenge",
    "FlowState",
    "FlowStep",
    "Identity",
    "PkcePair",
    "TokenResult",
]
