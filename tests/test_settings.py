import pytest

from gitready.settings import get_fetch_concurrency, get_fork_timeout_seconds, get_github_token, get_max_attempts, get_quota_threshold


def test_token_from_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "pat")

    assert get_github_token() == "pat"

    monkeypatch.setenv("GITHUB_TOKEN", "token")

    assert get_github_token() == "token"


def test_missing_token(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_PERSONAL_ACCESS_TOKEN", raising=False)

    with pytest.raises(ValueError, match="must be set"):
        _ = get_github_token()


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    for env_var in ("GITREADY_MAX_ATTEMPTS", "GITREADY_QUOTA_THRESHOLD", "GITREADY_FORK_TIMEOUT_SECONDS", "GITREADY_FETCH_CONCURRENCY"):
        monkeypatch.delenv(env_var, raising=False)

    assert get_max_attempts() == 3
    assert get_quota_threshold() == 10
    assert get_fork_timeout_seconds() == 15.0
    assert get_fetch_concurrency() == 4


def test_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("GITREADY_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("GITREADY_FORK_TIMEOUT_SECONDS", "30")

    assert get_max_attempts() == 5
    assert get_fork_timeout_seconds() == 30.0
