"""Preflight checks for a bridge deployment.

Two subcommands are available:

``config``
    Loads ``AppSettings`` from the given ``.env`` file and looks for
    combinations the silent flow cannot work with, such as a callback URI
    that the redirect classifier would mistake for the login or consent
    endpoint.

``upstream``
    Runs the ``config`` checks, then asks Kratos, the Hydra public API and
    the Hydra admin API whether they are ready to serve traffic.

Example usages::

    python -m scripts.check_env config --env-file /etc/authbridge/.env
    python -m scripts.check_env upstream --env-file /etc/authbridge/.env
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import httpx
from pydantic import ValidationError

from authbridge.core.config import AppSettings, load_settings
from authbridge.services.redirect_chain import HopKind, classify

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CONFIG_ERROR = 3
EXIT_UPSTREAM_ERROR = 4
EXIT_RUNTIME_ERROR = 5

READY_PATH = "/health/ready"


def config_problems(settings: AppSettings) -> list[str]:
    """Return human-readable problems with an otherwise valid configuration."""
    oauth = settings.oauth
    problems: list[str] = []

    redirect_kind = classify(str(oauth.redirect_uri), oauth)
    if redirect_kind in (HopKind.LOGIN, HopKind.CONSENT):
        problems.append(
            f"OAUTH2_REDIRECT_URI {oauth.redirect_uri} would be treated as the "
            f"{redirect_kind.value} endpoint"
        )
    if oauth.login_path.rstrip("/") == oauth.consent_path.rstrip("/"):
        problems.append("OAUTH2_LOGIN_PATH and OAUTH2_CONSENT_PATH must differ")
    if "openid" not in oauth.scopes:
        problems.append("OAUTH2_SCOPES must include 'openid'")
    if settings.environment == "production" and not settings.cookies.secure:
        problems.append("COOKIE_SECURE must be enabled in production")
    return problems


def upstream_targets(settings: AppSettings) -> dict[str, str]:
    return {
        "kratos": f"{str(settings.kratos.public_url).rstrip('/')}{READY_PATH}",
        "hydra public": f"{str(settings.hydra.public_url).rstrip('/')}{READY_PATH}",
        "hydra admin": f"{str(settings.hydra.admin_url).rstrip('/')}{READY_PATH}",
    }


def upstream_problems(
    settings: AppSettings, transport: Optional[httpx.BaseTransport] = None
) -> list[str]:
    """Ask every upstream readiness endpoint once."""
    problems: list[str] = []
    with httpx.Client(
        timeout=settings.http_timeout_seconds, transport=transport
    ) as client:
        for name, url in upstream_targets(settings).items():
            try:
                response = client.get(url)
            except httpx.HTTPError as exc:
                problems.append(f"{name} unreachable at {url}: {exc}")
                continue
            if response.status_code != httpx.codes.OK:
                problems.append(f"{name} not ready at {url}: HTTP {response.status_code}")
            else:
                print(f"{name} ready ({url})")
    return problems


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate bridge settings and upstream readiness."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (
        ("config", "Validate settings without any network calls."),
        ("upstream", "Validate settings and check Kratos and Hydra readiness."),
    ):
        subparser = subparsers.add_parser(command, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    return parser


def _report(problems: list[str]) -> None:
    for problem in problems:
        print(f"  - {problem}", file=sys.stderr)


def main(
    argv: list[str] | None = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    problems = config_problems(settings)
    if problems:
        print("Configuration problems:", file=sys.stderr)
        _report(problems)
        return EXIT_CONFIG_ERROR
    print(f"Settings OK for client {settings.oauth.client_id}.")

    if args.command == "upstream":
        problems = upstream_problems(settings, transport)
        if problems:
            print("Upstream problems:", file=sys.stderr)
            _report(problems)
            return EXIT_UPSTREAM_ERROR

    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
