"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except ImportError:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import json
from urllib.parse import parse_qs, quote

import httpx
import pytest

from authbridge.core.config import AppSettings, get_settings
from authbridge.services import SilentFlowService
from authbridge.services.pkce import derive_challenge

SESSION_COOKIE = "ory_kratos_session=valid-session"

KRATOS = "http://kratos.test"
HYDRA = "http://hydra.test"
HYDRA_ADMIN = "http://hydra-admin.test"
APP = "http://app.test"
CALLBACK = f"{APP}/api/auth/oauth/callback"
REQUESTS_PATH = "/admin/oauth2/auth/requests"


class FakeIdentityStack:
    """Scripted Kratos + Hydra pair served through ``httpx.MockTransport``.

    The default script mirrors Hydra's real chain: authorize -> login
    endpoint -> (admin accept) -> authorize?login_verifier -> consent
    endpoint -> (admin accept) -> authorize?consent_verifier -> callback.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.code = "ory_ac_injected-code"
        self.login_challenge = "login-challenge/7f+Q=="
        # Hydra's challenge arrives escaped twice by the time it hits Location.
        self.login_challenge_raw = quote(quote(self.login_challenge, safe=""), safe="")
        self.consent_challenge = "consent-challenge/9a+Z=="
        self.consent_challenge_raw = quote(self.consent_challenge, safe="")
        self.requested_scope = ["openid", "profile", "email", "offline"]

        self.session_status = 200
        self.traits: dict = {"email": "ada@example.com", "email_verified": True}
        self.auth_status = 302
        self.first_location: str | None = None
        self.loop_forever = False
        self.login_accept_status = 200
        self.login_accept_body: dict | None = None
        self.consent_accept_status = 200
        self.token_status = 200
        self.token_payload: dict = {
            "access_token": "ory_at_access",
            "refresh_token": "ory_rt_refresh",
            "expires_in": 1800,
            "token_type": "bearer",
        }
        self.userinfo_status = 200
        self.logout_request_status = 200
        self.logout_accept_body: dict = {"redirect_to": f"{APP}/signed-out"}

        self.code_challenge: str | None = None
        self.state: str | None = None
        self.login_accept_payloads: list[dict] = []
        self.login_accept_challenges: list[str] = []
        self.consent_accept_payloads: list[dict] = []
        self.token_requests: list[dict[str, str]] = []
        self.logout_accept_challenges: list[str] = []
        self.kratos_logout_tokens: list[str] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p == path)

    def count_host(self, host: str) -> int:
        return sum(1 for _, p in self.calls if p.startswith(host))

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = request.url
        base = f"{url.scheme}://{url.host}{url.path}"
        self.calls.append((request.method, base))
        params = url.params

        if base == f"{KRATOS}/sessions/whoami":
            return self._whoami(request)

        if base == f"{KRATOS}/self-service/logout/browser":
            if "ory_kratos_session=valid-session" not in request.headers.get("cookie", ""):
                return httpx.Response(401, json={"error": {"code": 401}})
            return httpx.Response(
                200,
                json={
                    "logout_token": "kratos-logout-token",
                    "logout_url": f"{KRATOS}/self-service/logout",
                },
            )

        if base == f"{KRATOS}/self-service/logout":
            self.kratos_logout_tokens.append(params["token"])
            return httpx.Response(204)

        if base == f"{HYDRA}/oauth2/auth":
            return self._authorize(params)

        if base.startswith(f"{HYDRA}/loop/"):
            hop = int(url.path.rsplit("/", 1)[-1])
            return httpx.Response(302, headers={"location": f"/loop/{hop + 1}"})

        if base == f"{HYDRA_ADMIN}{REQUESTS_PATH}/login/accept":
            return self._accept_login(request)

        if base == f"{HYDRA_ADMIN}{REQUESTS_PATH}/consent":
            return httpx.Response(
                200,
                json={
                    "challenge": params["consent_challenge"],
                    "requested_scope": self.requested_scope,
                    "subject": "identity-123",
                    "client": {"client_id": "bridge-client"},
                },
            )

        if base == f"{HYDRA_ADMIN}{REQUESTS_PATH}/consent/accept":
            self.consent_accept_payloads.append(httpx_json(request))
            if self.consent_accept_status != 200:
                return httpx.Response(self.consent_accept_status, json={"error": "server_error"})
            return httpx.Response(
                200, json={"redirect_to": f"{HYDRA}/oauth2/auth?consent_verifier=cv-1"}
            )

        if base == f"{HYDRA_ADMIN}{REQUESTS_PATH}/logout":
            if self.logout_request_status != 200:
                return httpx.Response(
                    self.logout_request_status,
                    json={"error": "Not Found", "error_description": "Unknown logout challenge"},
                )
            return httpx.Response(
                200,
                json={
                    "challenge": params["logout_challenge"],
                    "rp_initiated": True,
                    "subject": "identity-123",
                },
            )

        if base == f"{HYDRA_ADMIN}{REQUESTS_PATH}/logout/accept":
            self.logout_accept_challenges.append(params["logout_challenge"])
            return httpx.Response(200, json=self.logout_accept_body)

        if base == f"{HYDRA}/oauth2/token":
            return self._token(request)

        if base == f"{HYDRA}/userinfo":
            if self.userinfo_status != 200:
                return httpx.Response(self.userinfo_status, json={"error": "invalid_token"})
            return httpx.Response(
                200,
                json={
                    "sub": "identity-123",
                    "email": "ada@example.com",
                    "email_verified": True,
                    "given_name": "Ada",
                    "family_name": "Lovelace",
                },
            )

        return httpx.Response(404, json={"error": "not_found", "url": str(url)})

    def _whoami(self, request: httpx.Request) -> httpx.Response:
        if "ory_kratos_session=valid-session" not in request.headers.get("cookie", ""):
            return httpx.Response(401, json={"error": {"code": 401}})
        if self.session_status != 200:
            return httpx.Response(self.session_status, json={"error": {"code": self.session_status}})
        return httpx.Response(
            200,
            json={
                "id": "session-1",
                "active": True,
                "identity": {"id": "identity-123", "traits": self.traits},
            },
        )

    def _authorize(self, params: httpx.QueryParams) -> httpx.Response:
        if "consent_verifier" in params:
            return httpx.Response(
                303,
                headers={
                    "location": f"{CALLBACK}?code={self.code}&scope=openid+offline&state={self.state}"
                },
            )
        if "login_verifier" in params:
            return httpx.Response(
                302,
                headers={
                    "location": f"{APP}/api/auth/oauth/hydra-consent"
                    f"?consent_challenge={self.consent_challenge_raw}"
                },
            )

        self.code_challenge = params.get("code_challenge")
        self.state = params.get("state")
        if self.auth_status not in (302, 303, 307, 308):
            return httpx.Response(self.auth_status, text="<html>login</html>")
        if self.first_location is not None:
            location = self.first_location
        elif self.loop_forever:
            location = f"{HYDRA}/loop/1"
        else:
            location = (
                f"{APP}/api/auth/oauth/hydra-login?login_challenge={self.login_challenge_raw}"
            )
        return httpx.Response(self.auth_status, headers={"location": location})

    def _accept_login(self, request: httpx.Request) -> httpx.Response:
        self.login_accept_challenges.append(request.url.params["login_challenge"])
        self.login_accept_payloads.append(httpx_json(request))
        if self.login_accept_status != 200:
            return httpx.Response(
                self.login_accept_status,
                json=self.login_accept_body or {"error": "server_error"},
            )
        return httpx.Response(
            200, json={"redirect_to": f"{HYDRA}/oauth2/auth?login_verifier=lv-1"}
        )

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.token_requests.append(form)
        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"error": "invalid_grant"})
        if form.get("grant_type") == "authorization_code":
            verifier = form.get("code_verifier", "")
            if form.get("code") != self.code or derive_challenge(verifier) != self.code_challenge:
                return httpx.Response(
                    400,
                    json={
                        "error": "invalid_grant",
                        "error_description": "The PKCE code challenge did not match.",
                    },
                )
        return httpx.Response(200, json=self.token_payload)


def httpx_json(request: httpx.Request) -> dict:
    return json.loads(request.content or b"{}")


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def settings() -> AppSettings:
    return get_settings()


@pytest.fixture
def upstream() -> FakeIdentityStack:
    return FakeIdentityStack()


@pytest.fixture
def service(settings: AppSettings, upstream: FakeIdentityStack) -> SilentFlowService:
    return SilentFlowService(settings, transport=upstream.transport)
