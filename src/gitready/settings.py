import os

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_QUOTA_THRESHOLD = 10
DEFAULT_FORK_TIMEOUT_SECONDS = 15.0
DEFAULT_FETCH_CONCURRENCY = 4

TOKEN_ENV_VARS: tuple[str, ...] = ("GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN")


def get_github_token() -> str:
    for env_var in TOKEN_ENV_VARS:
        if env_var in os.environ:
            return os.environ[env_var]
    msg = "GITHUB_TOKEN or GITHUB_PERSONAL_ACCESS_TOKEN must be set"
    raise ValueError(msg)


def get_max_attempts() -> int:
    return int(os.getenv("GITREADY_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS)))


def get_quota_threshold() -> int:
    return int(os.getenv("GITREADY_QUOTA_THRESHOLD", str(DEFAULT_QUOTA_THRESHOLD)))


def get_fork_timeout_seconds() -> float:
    return float(os.getenv("GITREADY_FORK_TIMEOUT_SECONDS", str(DEFAULT_FORK_TIMEOUT_SECONDS)))


def get_fetch_concurrency() -> int:
    return int(os.getenv("GITREADY_FETCH_CONCURRENCY", str(DEFAULT_FETCH_CONCURRENCY)))
