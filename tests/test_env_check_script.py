"""Tests for the deployment preflight script."""

from __future__ import annotations

from pathlib import Path

import pytest

from scripts import check_env

ENV_KEYS = [
    "APP_ENV",
    "FRONTEND_BASE_URL",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
    "OAUTH_SCOPES",
    "OAUTH_REFRESH_MARGIN_SECONDS",
    "PHOTOS_MAX_TAIL_PAGES",
    "SESSION_DB_PATH",
    "SLIDESHOW_PRESENTATION_INTERVAL",
    "SLIDESHOW_SYNC_INTERVAL",
    "TOKEN_ENCRYPTION_SECRET",
]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ENV_KEYS:
        # setenv first so teardown also removes values the .env loader injects.
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)


def _write_env(tmp_path: Path, **overrides: str) -> Path:
    values = {
        "GOOGLE_CLIENT_ID": "abc",
        "GOOGLE_CLIENT_SECRET": "secret",
        "GOOGLE_REDIRECT_URI": "http://localhost:8000/api/auth/google/callback",
        "TOKEN_ENCRYPTION_SECRET": "a-long-random-secret",
        "SESSION_DB_PATH": str(tmp_path / "data" / "sessions.db"),
    }
    values.update(overrides)
    env_path = tmp_path / ".env"
    contents = "\n".join(f"{key}={value}" for key, value in values.items() if value)
    env_path.write_text(contents + "\n", encoding="utf-8")
    return env_path


@pytest.mark.parametrize("command", ["check", "show"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    exit_code = check_env.main([command, "--env-file", str(tmp_path / ".missing-env")])
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_check_passes_for_local_development(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = _write_env(tmp_path)

    exit_code = check_env.main(["check", "--env-file", str(env_file), "--strict"])

    assert exit_code == check_env.EXIT_OK
    assert "Settings OK (0 warning(s))" in capsys.readouterr().out


def test_missing_client_secret_is_a_validation_error(tmp_path: Path) -> None:
    env_file = _write_env(tmp_path, GOOGLE_CLIENT_SECRET="")

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_VALIDATION_ERROR


def test_out_of_range_tail_cap_is_a_validation_error(tmp_path: Path) -> None:
    env_file = _write_env(tmp_path, PHOTOS_MAX_TAIL_PAGES="0")

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_VALIDATION_ERROR


def test_redirect_must_reach_callback_route(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = _write_env(tmp_path, GOOGLE_REDIRECT_URI="http://localhost:8000/oauth/callback")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_PREFLIGHT_ERROR
    assert "must point at /api/auth/google/callback" in capsys.readouterr().err


def test_production_requires_https_redirect(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = _write_env(tmp_path, APP_ENV="production")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_PREFLIGHT_ERROR
    assert "must use https outside development" in capsys.readouterr().err


def test_scopes_without_photos_access_fail(tmp_path: Path) -> None:
    env_file = _write_env(tmp_path, OAUTH_SCOPES="openid,email")

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_PREFLIGHT_ERROR


def test_unwritable_session_store_fails(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    env_file = _write_env(tmp_path, SESSION_DB_PATH=str(blocker / "sessions.db"))

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_PREFLIGHT_ERROR


def test_timer_and_secret_warnings_only_fail_in_strict_mode(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = _write_env(
        tmp_path,
        TOKEN_ENCRYPTION_SECRET="",
        SLIDESHOW_SYNC_INTERVAL="5",
        SLIDESHOW_PRESENTATION_INTERVAL="10",
    )

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_OK
    assert "Settings OK (2 warning(s))" in capsys.readouterr().out

    exit_code = check_env.main(["check", "--env-file", str(env_file), "--strict"])
    assert exit_code == check_env.EXIT_PREFLIGHT_ERROR
    err = capsys.readouterr().err
    assert "TOKEN_ENCRYPTION_SECRET is unset" in err
    assert "SLIDESHOW_PRESENTATION_INTERVAL" in err


def test_show_prints_effective_settings(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = _write_env(tmp_path, PHOTOS_MAX_TAIL_PAGES="3")

    assert check_env.main(["show", "--env-file", str(env_file)]) == check_env.EXIT_OK
    assert "max tail pages:        3" in capsys.readouterr().out
