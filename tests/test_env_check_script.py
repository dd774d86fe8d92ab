"""Tests for the environment drift detection script."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path
from typing import Dict

import pytest

from scripts import check_env

MANAGED_ENV_KEYS = [
    "APP_ENV",
    "JWT_SECRET",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GITHUB_CLIENT_ID",
    "GITHUB_CLIENT_SECRET",
    "SSO_CALLBACK_BASE_URL",
    "BACKEND_URL",
    "FRONTEND_URL",
]


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_managed_env(environ: Dict[str, str]) -> None:
    for key in MANAGED_ENV_KEYS:
        environ.pop(key, None)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_mismatched_checksum(
    tmp_path: Path, isolated_environ: Dict[str, str], capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_managed_env(isolated_environ)
    _write_env(
        env_file,
        APP_ENV="production",
        JWT_SECRET="prod-secret",
        FRONTEND_URL="https://app.example",
        SSO_CALLBACK_BASE_URL="https://api.example",
        GITHUB_CLIENT_ID="gh-id",
        GITHUB_CLIENT_SECRET="gh-secret",
    )

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK
    assert (
        "SSO provider configured: github "
        "(callback: https://api.example/api/sso/callback/github)"
    ) in capsys.readouterr().out
    baseline = hash_file.read_text(encoding="utf-8").strip()
    assert baseline

    _clear_managed_env(isolated_environ)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(
        env_file,
        APP_ENV="production",
        JWT_SECRET="rotated-secret",
        FRONTEND_URL="https://app.example",
        SSO_CALLBACK_BASE_URL="https://api.example",
        GITHUB_CLIENT_ID="gh-id",
        GITHUB_CLIENT_SECRET="gh-secret",
    )

    _clear_managed_env(isolated_environ)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


def test_verify_without_baseline_is_runtime_error(
    tmp_path: Path, isolated_environ: Dict[str, str]
) -> None:
    env_file = tmp_path / ".env"
    _clear_managed_env(isolated_environ)
    _write_env(env_file, APP_ENV="development")

    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(tmp_path / "absent")]
    )
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_validation_failure_for_missing_production_secret(
    tmp_path: Path, isolated_environ: Dict[str, str]
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_managed_env(isolated_environ)
    _write_env(
        env_file,
        APP_ENV="production",
        GOOGLE_CLIENT_ID="abc",
        GOOGLE_CLIENT_SECRET="secret",
    )

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert not hash_file.exists()


def test_malformed_duration_is_validation_error(
    tmp_path: Path, isolated_environ: Dict[str, str]
) -> None:
    env_file = tmp_path / ".env"
    _clear_managed_env(isolated_environ)
    isolated_environ.pop("JWT_EXPIRES_IN", None)
    _write_env(env_file, APP_ENV="development", JWT_EXPIRES_IN="forever")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_production_requires_explicit_callback_base(
    tmp_path: Path, isolated_environ: Dict[str, str], capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _clear_managed_env(isolated_environ)
    _write_env(
        env_file,
        APP_ENV="production",
        JWT_SECRET="prod-secret",
        FRONTEND_URL="http://app.example",
    )

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    errors = capsys.readouterr().err
    assert "SSO_CALLBACK_BASE_URL" in errors
    assert "FRONTEND_URL must use https" in errors
