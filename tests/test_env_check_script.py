"""Tests for the deployment preflight script."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from scripts import check_env

REQUIRED_ENV_KEYS = [
    "KRATOS_PUBLIC_URL",
    "HYDRA_PUBLIC_URL",
    "HYDRA_ADMIN_URL",
    "OAUTH2_CLIENT_ID",
    "OAUTH2_REDIRECT_URI",
    "OAUTH2_SCOPES",
    "OAUTH2_LOGIN_PATH",
    "OAUTH2_CONSENT_PATH",
    "APP_ENV",
    "COOKIE_SECURE",
]

VALID_ENV = {
    "KRATOS_PUBLIC_URL": "http://kratos:4433",
    "HYDRA_PUBLIC_URL": "http://hydra:4444",
    "HYDRA_ADMIN_URL": "http://hydra:4445",
    "OAUTH2_CLIENT_ID": "dashboard",
    "OAUTH2_REDIRECT_URI": "https://dashboard.example.com/auth/callback",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


@pytest.fixture
def env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for key in REQUIRED_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return tmp_path / ".env"


@pytest.mark.parametrize("command", ["config", "upstream"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    exit_code = check_env.main([command, "--env-file", str(tmp_path / ".missing-env")])
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_valid_configuration_passes(env_file: Path) -> None:
    _write_env(env_file, **VALID_ENV)

    assert check_env.main(["config", "--env-file", str(env_file)]) == check_env.EXIT_OK


def test_validation_failure_for_missing_required_values(env_file: Path) -> None:
    incomplete = dict(VALID_ENV)
    incomplete.pop("HYDRA_ADMIN_URL")
    _write_env(env_file, **incomplete)

    exit_code = check_env.main(["config", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_callback_shadowed_by_login_path_is_rejected(
    env_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write_env(
        env_file,
        **{
            **VALID_ENV,
            "OAUTH2_REDIRECT_URI": "https://dashboard.example.com/api/auth/oauth/hydra-login",
        },
    )

    exit_code = check_env.main(["config", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_CONFIG_ERROR
    assert "login endpoint" in capsys.readouterr().err


def test_identical_login_and_consent_paths_are_rejected(env_file: Path) -> None:
    _write_env(
        env_file,
        **VALID_ENV,
        OAUTH2_LOGIN_PATH="/oauth/challenge",
        OAUTH2_CONSENT_PATH="/oauth/challenge/",
    )

    exit_code = check_env.main(["config", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_CONFIG_ERROR


def test_insecure_cookies_rejected_in_production(env_file: Path) -> None:
    _write_env(env_file, **VALID_ENV, APP_ENV="production", COOKIE_SECURE="false")

    exit_code = check_env.main(["config", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_CONFIG_ERROR


def test_scopes_are_read_as_comma_separated_list(env_file: Path) -> None:
    _write_env(env_file, **VALID_ENV, OAUTH2_SCOPES="openid, offline")

    from authbridge.core.config import load_settings

    settings = load_settings(env_file)
    assert settings.oauth.scopes == ("openid", "offline")
    assert check_env.config_problems(settings) == []


def test_upstream_check_hits_every_readiness_endpoint(env_file: Path) -> None:
    _write_env(env_file, **VALID_ENV)
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"status": "ok"})

    exit_code = check_env.main(
        ["upstream", "--env-file", str(env_file)], transport=httpx.MockTransport(handler)
    )

    assert exit_code == check_env.EXIT_OK
    assert seen == [
        "http://kratos:4433/health/ready",
        "http://hydra:4444/health/ready",
        "http://hydra:4445/health/ready",
    ]


def test_upstream_check_reports_unready_and_unreachable_services(
    env_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write_env(env_file, **VALID_ENV)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.port == 4433:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.port == 4445:
            return httpx.Response(503, json={"errors": {"database": "down"}})
        return httpx.Response(200, json={"status": "ok"})

    exit_code = check_env.main(
        ["upstream", "--env-file", str(env_file)], transport=httpx.MockTransport(handler)
    )

    assert exit_code == check_env.EXIT_UPSTREAM_ERROR
    err = capsys.readouterr().err
    assert "kratos unreachable" in err
    assert "hydra admin not ready" in err
    assert "hydra public" not in err
