"""Preflight check for a slideshow deployment's configuration.

Loads ``AppSettings`` from an env file and then checks the combinations a
single field validator cannot see: the OAuth redirect has to reach this
service's callback route, sessions need a writable database location, the
display timers need to make sense together, and production cookies require
HTTPS.

Example usages::

    # Fail the deploy on any problem.
    python -m scripts.check_env check --env-file /opt/slideshow/.env

    # Also treat warnings as failures and show the effective values.
    python -m scripts.check_env check --env-file /opt/slideshow/.env --strict
    python -m scripts.check_env show --env-file /opt/slideshow/.env
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

from pydantic import ValidationError

from slideshow.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_PREFLIGHT_ERROR = 4
EXIT_RUNTIME_ERROR = 5

CALLBACK_PATH = "/api/auth/google/callback"
PHOTOS_READ_SCOPES = (
    "https://www.googleapis.com/auth/photoslibrary.readonly",
    "https://www.googleapis.com/auth/photoslibrary",
)
# Google access tokens are issued for an hour.
ACCESS_TOKEN_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class Problem:
    level: str  # "error" or "warning"
    message: str


def load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        raise FileNotFoundError(f"Environment file {env_file} does not exist.")
    _load_env_file(str(env_file))
    return AppSettings(_env_file=env_file)  # type: ignore[call-arg]


def _writable_location(db_path: Path) -> bool:
    """The database file, or the closest existing ancestor, must be writable."""
    if db_path.exists():
        return db_path.is_file() and os.access(db_path, os.W_OK)
    parent = db_path.parent
    while not parent.exists():
        parent = parent.parent
    return parent.is_dir() and os.access(parent, os.W_OK)


def find_problems(settings: AppSettings) -> List[Problem]:
    problems: List[Problem] = []
    production = settings.environment != "development"

    redirect = settings.google.redirect_uri
    if not (redirect.path or "").rstrip("/").endswith(CALLBACK_PATH):
        problems.append(
            Problem("error", f"GOOGLE_REDIRECT_URI must point at {CALLBACK_PATH}, got {redirect}")
        )
    if production and redirect.scheme != "https":
        problems.append(
            Problem("error", "GOOGLE_REDIRECT_URI must use https outside development")
        )

    if not any(scope in settings.oauth.scopes for scope in PHOTOS_READ_SCOPES):
        problems.append(
            Problem("error", "OAUTH_SCOPES grants no read access to the Photos Library")
        )

    if settings.oauth.refresh_margin_seconds >= ACCESS_TOKEN_LIFETIME_SECONDS:
        problems.append(
            Problem(
                "warning",
                "OAUTH_REFRESH_MARGIN_SECONDS is at least an access token's lifetime; "
                "every upstream call will refresh first",
            )
        )

    if not _writable_location(Path(settings.session_db_path)):
        problems.append(
            Problem("error", f"SESSION_DB_PATH {settings.session_db_path} is not writable")
        )

    if not settings.security.token_encryption_secret:
        problems.append(
            Problem(
                "warning",
                "TOKEN_ENCRYPTION_SECRET is unset; stored tokens are keyed off the client secret",
            )
        )

    slideshow = settings.slideshow
    if slideshow.presentation_interval_seconds >= slideshow.sync_interval_seconds:
        problems.append(
            Problem(
                "warning",
                "SLIDESHOW_PRESENTATION_INTERVAL is not shorter than SLIDESHOW_SYNC_INTERVAL; "
                "new photos may be fetched faster than they can be shown",
            )
        )

    frontend = settings.frontend_base_url
    if production and frontend is not None and frontend.scheme != "https":
        problems.append(
            Problem("warning", "FRONTEND_BASE_URL is not https; the secure session cookie won't reach it")
        )

    return problems


def _show(settings: AppSettings) -> None:
    print(
        f"  environment:           {settings.environment}\n"
        f"  redirect uri:          {settings.google.redirect_uri}\n"
        f"  scopes:                {' '.join(settings.oauth.scopes)}\n"
        f"  sync interval:         {settings.slideshow.sync_interval_seconds}s\n"
        f"  presentation interval: {settings.slideshow.presentation_interval_seconds}s\n"
        f"  media page size:       {settings.photos.media_page_size}\n"
        f"  max tail pages:        {settings.photos.max_tail_pages}\n"
        f"  session store:         {settings.session_db_path}"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Preflight check for slideshow settings.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Report configuration problems.")
    check_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on warnings as well as errors.",
    )
    show_parser = subparsers.add_parser("show", help="Print the effective settings.")

    for subparser in (check_parser, show_parser):
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(f"Settings validation failed:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    if args.command == "show":
        _show(settings)
        return EXIT_OK

    problems = find_problems(settings)
    for problem in problems:
        print(f"{problem.level.upper()}: {problem.message}", file=sys.stderr)

    failing = [p for p in problems if p.level == "error" or args.strict]
    if failing:
        return EXIT_PREFLIGHT_ERROR
    print(f"Settings OK ({len(problems)} warning(s)).")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
