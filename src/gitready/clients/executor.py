import json
from collections.abc import Mapping
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from gitready.clients.errors.github import (
    ForbiddenError,
    QuotaExhaustedError,
    RequestError,
    RequestRejectedError,
    ResourceNotFoundError,
    RetriesExhaustedError,
    TimeoutExceededError,
)
from gitready.clients.governor import REMAINING_HEADER, RESET_HEADER, RateGovernor
from gitready.settings import get_max_attempts
from gitready.utilities.clock import SYSTEM_CLOCK, Clock

if TYPE_CHECKING:
    from githubkit import GitHub as GitHubKit
    from githubkit.response import Response as GitHubKitResponse

NOT_FOUND_ERROR = 404
FORBIDDEN_ERROR = 403

RETRY_BACKOFF_SECONDS = 1.0

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

T = TypeVar("T")


class ApiRequest(BaseModel):
    """A single call to the GitHub REST API."""

    model_config = ConfigDict(frozen=True)

    action: str = Field(description="What the request is for, used in logs and errors.")
    method: HttpMethod = Field(default="GET")
    url: str = Field(description="The path of the endpoint, relative to the API base URL.")
    params: dict[str, Any] | None = Field(default=None)
    json_body: dict[str, Any] | None = Field(default=None)
    headers: dict[str, str] | None = Field(default=None)
    terminal_statuses: frozenset[int] = Field(
        default=frozenset(), description="Error statuses that should fail immediately instead of being retried."
    )


class ApiResponse(BaseModel):
    """A successful response from the GitHub REST API."""

    status_code: int
    headers: dict[str, str]
    content: bytes

    def json_data(self) -> Any:  # pyright: ignore[reportAny]
        if not self.content:
            return None
        return json.loads(self.content)  # pyright: ignore[reportAny]

    def parse_as(self, response_type: type[T]) -> T:
        return TypeAdapter(response_type).validate_json(self.content)


def _response_headers(response: "GitHubKitResponse[Any]") -> dict[str, str]:
    return {key.lower(): value for key, value in response.headers.items()}


class RequestExecutor:
    """Runs every API call through the rate governor with bounded, linear-backoff retries.

    404 and 403 responses are final. 403 responses that report an empty quota become `QuotaExhaustedError`.
    Any other error status, and any transport failure, is retried after `attempt * 1s`.
    """

    githubkit_client: "GitHubKit[Any]"
    governor: RateGovernor
    clock: Clock
    logger: Logger
    max_attempts: int

    def __init__(
        self,
        githubkit_client: "GitHubKit[Any]",
        governor: RateGovernor,
        clock: Clock | None = None,
        logger: Logger | None = None,
        max_attempts: int | None = None,
    ):
        self.githubkit_client = githubkit_client
        self.governor = governor
        self.clock = clock or SYSTEM_CLOCK
        self.logger = logger or getLogger(__name__)
        self.max_attempts = max_attempts or get_max_attempts()

    async def execute(self, request: ApiRequest, max_attempts: int | None = None, deadline: float | None = None) -> ApiResponse:
        """Execute the request, retrying transient failures.

        Args:
            request: The request to execute.
            max_attempts: The maximum number of attempts. Defaults to the executor's setting.
            deadline: An absolute time (seconds since the epoch) that no retry sleep may cross.

        Raises:
            ResourceNotFoundError: If the API responded with a 404.
            QuotaExhaustedError: If the governor refused the call or the API reported an empty quota.
            ForbiddenError: If the API responded with any other 403.
            RequestRejectedError: If the API responded with one of the request's terminal statuses.
            RetriesExhaustedError: If every attempt failed with a retryable error.
            TimeoutExceededError: If waiting for the next attempt would cross the deadline.
        """

        attempts: int = max_attempts or self.max_attempts

        last_error: RequestError | None = None
        last_status: int | None = None

        for attempt in range(1, attempts + 1):
            await self.governor.check_before_call(action=request.action)

            try:
                response: GitHubKitResponse[Any] = await self.githubkit_client.arequest(
                    request.method,
                    request.url,
                    params=request.params,
                    json=request.json_body,
                    headers=request.headers,
                )
            except GitHubKitRequestFailed as e:
                headers: dict[str, str] = _response_headers(e.response)
                _ = self.governor.observe(headers)

                last_status = e.response.status_code
                last_error = self._classify_failure(request=request, status_code=last_status, headers=headers, body=e.response.text)

                self.logger.warning(f"Attempt {attempt}/{attempts} of {request.action} failed with status {last_status}")
            except GitHubKitGitHubException as e:
                last_status = None
                last_error = RequestError(action=request.action, message=str(e))

                self.logger.warning(f"Attempt {attempt}/{attempts} of {request.action} failed: {e}")
            else:
                _ = self.governor.observe(_response_headers(response))

                return ApiResponse(status_code=response.status_code, headers=_response_headers(response), content=response.content)

            if attempt == attempts:
                break

            delay: float = attempt * RETRY_BACKOFF_SECONDS

            if deadline is not None and self.clock.now() + delay > deadline:
                raise TimeoutExceededError(action=request.action, timeout=deadline - self.clock.now()) from last_error

            await self.clock.sleep(delay)

        raise RetriesExhaustedError(
            action=request.action,
            attempts=attempts,
            status_code=last_status,
            message=str(last_error) if last_error else None,
        ) from last_error

    def _classify_failure(self, request: ApiRequest, status_code: int, headers: Mapping[str, str], body: str) -> RequestError:
        """Raise terminal failures, return retryable ones."""

        if status_code == NOT_FOUND_ERROR:
            raise ResourceNotFoundError(action=request.action, resource=request.url)

        if status_code == FORBIDDEN_ERROR:
            if headers.get(REMAINING_HEADER) == "0":
                reset: str | None = headers.get(RESET_HEADER)
                raise QuotaExhaustedError(
                    action=request.action,
                    remaining=0,
                    reset_epoch_seconds=int(reset) if reset and reset.isdigit() else None,
                )

            raise ForbiddenError(action=request.action, resource=request.url, message=_error_message(body))

        if status_code in request.terminal_statuses:
            raise RequestRejectedError(action=request.action, status_code=status_code, message=_error_message(body))

        return RequestError(action=request.action, message=_error_message(body), extra_info={"status_code": str(status_code)})


def _error_message(body: str) -> str | None:
    """Pull the `message` field out of a GitHub error body."""

    try:
        payload: Any = json.loads(body)  # pyright: ignore[reportAny]
    except ValueError:
        return body or None

    if isinstance(payload, dict) and isinstance(message := payload.get("message"), str):  # pyright: ignore[reportUnknownMemberType]
        return message

    return body or None
