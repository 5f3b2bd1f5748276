"""Service layer exports."""

from .acceptors import ConsentAcceptor, LoginAcceptor, LogoutAcceptor
from .challenge import decode_challenge
from .cookies import CookieIssuer
from .redirect_chain import RedirectChainOrchestrator
from .silent_flow import SilentFlowService

__all__ = [
    "ConsentAcceptor",
    "CookieIssuer",
    "LoginAcceptor",
    "LogoutAcceptor",
    "RedirectChainOrchestrator",
    "SilentFlowService",
    "decode_challenge",
]
