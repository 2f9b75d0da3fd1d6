from typing import Any, ClassVar, Self

from pydantic import BaseModel, Field

ExtraInfoType = dict[str, str | None]

TOKEN_SCOPE_HINT = (
    "Use a classic token with repo scope, or a fine-grained token with Contents: Read & write, "
    "Pull requests: Read & write, and access to public repos."
)
TOKEN_DOCS_URL = "https://docs.github.com/authentication/keeping-your-account-and-data-secure/creating-a-personal-access-token"


class ClientError(Exception):
    """A request error from the GitReady client."""

    kind: ClassVar[str] = "client_error"
    hint: ClassVar[str | None] = None

    extra_info: ExtraInfoType

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        self.extra_info = extra_info or {}
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class RequestError(ClientError):
    """A request to the GitHub API failed."""

    kind: ClassVar[str] = "request_error"

    action: str

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None):
        self.action = action
        if not extra_info:
            extra_info = {}
        super().__init__(message="A request error occured.", extra_info={"action": action, "message": message, **extra_info})


class ResourceNotFoundError(RequestError):
    """The requested resource does not exist or is not visible to the token."""

    kind: ClassVar[str] = "not_found"

    def __init__(self, action: str, resource: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(
            action=action,
            message="The resource could not be found.",
            extra_info={"resource": resource, **extra_info},
        )


class ForbiddenError(RequestError):
    """The token is not allowed to perform the request."""

    kind: ClassVar[str] = "forbidden"
    hint: ClassVar[str | None] = TOKEN_SCOPE_HINT

    def __init__(self, action: str, resource: str | None = None, message: str | None = None):
        super().__init__(
            action=action,
            message=message or "Access forbidden. The token lacks the permissions required for this request.",
            extra_info={"resource": resource},
        )


class QuotaExhaustedError(RequestError):
    """The API request quota is (nearly) used up until the reset time."""

    kind: ClassVar[str] = "quota_exhausted"
    hint: ClassVar[str | None] = "Wait until the quota resets or use a Personal Access Token for higher limits."

    remaining: int | None
    reset_epoch_seconds: int | None

    def __init__(self, action: str, remaining: int | None = None, reset_epoch_seconds: int | None = None):
        self.remaining = remaining
        self.reset_epoch_seconds = reset_epoch_seconds
        super().__init__(
            action=action,
            message="Rate limit exceeded.",
            extra_info={
                "remaining": str(remaining) if remaining is not None else None,
                "reset": str(reset_epoch_seconds) if reset_epoch_seconds is not None else "unknown",
            },
        )


class RequestRejectedError(RequestError):
    """The API rejected the request with a status the caller asked to treat as final."""

    kind: ClassVar[str] = "rejected"

    status_code: int

    def __init__(self, action: str, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(action=action, message=message, extra_info={"status_code": str(status_code)})


class RetriesExhaustedError(RequestError):
    """Every attempt of a retryable request failed."""

    kind: ClassVar[str] = "retries_exhausted"
    hint: ClassVar[str | None] = "GitHub appears to be unstable right now. Try again in a few minutes."

    attempts: int
    status_code: int | None

    def __init__(self, action: str, attempts: int, status_code: int | None = None, message: str | None = None):
        self.attempts = attempts
        self.status_code = status_code
        super().__init__(
            action=action,
            message=message,
            extra_info={"attempts": str(attempts), "status_code": str(status_code) if status_code is not None else None},
        )


class IdentityResolutionFailedError(ClientError):
    """The token does not resolve to a user that could own a fork."""

    kind: ClassVar[str] = "identity_resolution_failed"
    hint: ClassVar[str | None] = TOKEN_SCOPE_HINT

    def __init__(self):
        super().__init__(message="Authenticated user not found from token.")


class TimeoutExceededError(ClientError):
    """A wait or retry loop ran past its deadline."""

    kind: ClassVar[str] = "timeout_exceeded"

    def __init__(self, action: str, timeout: float):
        super().__init__(message="Timed out.", extra_info={"action": action, "timeout": f"{timeout:g}s"})


class InvalidTransitionError(ClientError):
    """A contribution plan was asked to move to a state it cannot reach from its current state."""

    kind: ClassVar[str] = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(message="Invalid contribution state transition.", extra_info={"from": current, "to": target})


class ErrorReport(BaseModel):
    """A failure, shaped for callers rather than for tracebacks."""

    kind: str = Field(description="The kind of failure.")
    message: str = Field(description="A human-readable description of the failure.")
    hint: str | None = Field(default=None, description="What the user can do about the failure.")
    docs: str | None = Field(default=None, description="A link to documentation that helps resolve the failure.")
    details: dict[str, Any] = Field(default_factory=dict, description="Structured details about the failure.")

    @classmethod
    def from_error(cls, error: ClientError) -> Self:
        return cls(
            kind=error.kind,
            message=str(error),
            hint=error.hint,
            docs=TOKEN_DOCS_URL if error.hint == TOKEN_SCOPE_HINT else None,
            details={key: value for key, value in error.extra_info.items() if value is not None},
        )
