import asyncio
import json
from collections.abc import Callable, Sequence
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Literal, overload
from urllib.parse import quote

from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException

from gitready.clients.errors.github import RequestError, ResourceNotFoundError
from gitready.clients.executor import ApiRequest, ApiResponse, HttpMethod, RequestExecutor
from gitready.clients.governor import QuotaSnapshot, RateGovernor
from gitready.clients.models.github import (
    AuthenticatedUser,
    CommitResult,
    ContentItem,
    GitReference,
    PullRequest,
    Repository,
    RepositoryFileWithContent,
    encode_content,
)
from gitready.models.repository.tree import RepositoryTree
from gitready.settings import get_fetch_concurrency, get_github_token
from gitready.utilities.clock import SYSTEM_CLOCK, Clock

if TYPE_CHECKING:
    from githubkit.response import Response as GitHubKitResponse

DEFAULT_TRUNCATE_CHARACTERS = 30000


def get_githubkit_client(token: str | None = None) -> GitHubKit[Any]:
    # Retries are handled by the RequestExecutor so that every attempt goes through the rate governor.
    return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token or get_github_token()), auto_retry=False)


def encode_path(path: str) -> str:
    return quote(path, safe="/")


class GitReadyClient:
    githubkit_client: GitHubKit[Any]
    governor: RateGovernor
    executor: RequestExecutor
    clock: Clock
    logger: Logger

    log_requests: bool
    log_responses: bool
    log_on_error: bool

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        governor: RateGovernor | None = None,
        clock: Clock | None = None,
        logger: Logger | None = None,
        max_attempts: int | None = None,
        log_requests: bool = True,
        log_responses: bool = False,
        log_on_error: bool = True,
    ):
        self.githubkit_client = githubkit_client or get_githubkit_client()
        self.clock = clock or SYSTEM_CLOCK
        self.logger = logger or getLogger(__name__)
        self.governor = governor or RateGovernor(fetcher=self.get_rate_limit, clock=self.clock, logger=self.logger)
        self.executor = RequestExecutor(
            githubkit_client=self.githubkit_client,
            governor=self.governor,
            clock=self.clock,
            logger=self.logger,
            max_attempts=max_attempts,
        )
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_on_error = log_on_error

    def _get_loggers(
        self, log_request: bool | None = None, log_response: bool | None = None, log_on_error: bool | None = None
    ) -> tuple[Callable[[str], Any], Callable[[str], Any], Callable[[str], Any]]:
        request_logger = self.logger.info if log_request or self.log_requests else self.logger.debug
        response_logger = self.logger.info if log_response or self.log_responses else self.logger.debug
        error_logger = self.logger.error if log_on_error or self.log_on_error else self.logger.debug
        return request_logger, response_logger, error_logger

    @overload
    async def _perform_rest_request(
        self,
        action: str,
        url: str,
        method: HttpMethod = "GET",
        error_on_not_found: Literal[True] = True,
        deadline: float | None = None,
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> ApiResponse: ...

    @overload
    async def _perform_rest_request(
        self,
        action: str,
        url: str,
        method: HttpMethod = "GET",
        error_on_not_found: Literal[False] = False,
        deadline: float | None = None,
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> ApiResponse | None: ...

    async def _perform_rest_request(
        self,
        action: str,
        url: str,
        method: HttpMethod = "GET",
        error_on_not_found: bool = True,
        deadline: float | None = None,
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> ApiResponse | None:
        """Perform a request through the executor.

        Args:
            action: The action being performed.
            url: The path of the endpoint.
            method: The HTTP method.
            error_on_not_found: Whether to raise an error if the resource is not found.
            deadline: An absolute time (seconds since the epoch) that no retry sleep may cross.
            request_args: Extra fields of the `ApiRequest` (params, json_body, headers, terminal_statuses).

        Raises:
            ResourceNotFoundError: If the resource is not found and error_on_not_found is True.
            RequestError: If the request fails.
        """

        request_logger, response_logger, error_logger = self._get_loggers()

        request: ApiRequest = ApiRequest(action=action, method=method, url=url, **request_args)  # pyright: ignore[reportAny]

        request_logger(f"Performing {action} using {method} {url}")

        try:
            response: ApiResponse = await self.executor.execute(request, deadline=deadline)
        except ResourceNotFoundError:
            if error_on_not_found:
                raise

            return None
        except RequestError as e:
            error_logger(f"Error performing {action} using {method} {url}: {e}")

            raise

        response_logger(f"Completed {action} using {method} {url} with status {response.status_code}")

        return response

    async def get_rate_limit(self) -> QuotaSnapshot:
        """Fetch the current quota directly, bypassing the governor (the rate limit endpoint costs no quota)."""

        try:
            response: GitHubKitResponse[Any] = await self.githubkit_client.arequest("GET", "/rate_limit")
        except GitHubKitGitHubException as e:
            raise RequestError(action="Get rate limit", message=str(e)) from e

        try:
            rate: dict[str, Any] = json.loads(response.content)["rate"]

            return QuotaSnapshot(
                remaining=rate["remaining"],
                limit=rate["limit"],
                reset_epoch_seconds=rate["reset"],
                observed_at=self.clock.now(),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise RequestError(action="Get rate limit", message=f"Malformed rate limit response: {e}") from e

    @overload
    async def get_repository(
        self, owner: str, repo: str, error_on_not_found: Literal[True] = True, deadline: float | None = None
    ) -> Repository: ...

    @overload
    async def get_repository(
        self, owner: str, repo: str, error_on_not_found: Literal[False] = False, deadline: float | None = None
    ) -> Repository | None: ...

    async def get_repository(
        self, owner: str, repo: str, error_on_not_found: bool = True, deadline: float | None = None
    ) -> Repository | None:
        """Get a repository. Retries of the request stop at `deadline` when one is given."""

        if response := await self._perform_rest_request(
            action="Get repository",
            url=f"/repos/{owner}/{repo}",
            error_on_not_found=error_on_not_found,
            deadline=deadline,
        ):
            return Repository.from_payload(response.json_data())

        return None

    async def get_default_branch(self, owner: str, repo: str) -> str:
        """Get the default branch of a repository."""

        repository: Repository = await self.get_repository(owner=owner, repo=repo, error_on_not_found=True)

        return repository.default_branch

    async def get_authenticated_user(self) -> AuthenticatedUser | None:
        """Get the user the token acts on behalf of, or None if the token has no user identity."""

        response: ApiResponse | None = await self._perform_rest_request(action="Get authenticated user", url="/user", error_on_not_found=False)

        if response is None:
            return None

        payload: Any = response.json_data()  # pyright: ignore[reportAny]

        if not isinstance(payload, dict) or not payload.get("login"):  # pyright: ignore[reportUnknownMemberType]
            return None

        return AuthenticatedUser.model_validate(payload)

    @overload
    async def get_git_ref(self, owner: str, repo: str, ref: str, error_on_not_found: Literal[False] = False) -> GitReference | None: ...

    @overload
    async def get_git_ref(self, owner: str, repo: str, ref: str, error_on_not_found: Literal[True] = True) -> GitReference: ...

    async def get_git_ref(self, owner: str, repo: str, ref: str, error_on_not_found: bool = False) -> GitReference | None:
        """Get details about a git ref from the repository.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            ref: The ref to look up, without the `refs/` prefix (for example `heads/main`).
            error_on_not_found: Whether to raise an error if the ref is not found.
        """

        if response := await self._perform_rest_request(
            action="Get git ref",
            url=f"/repos/{owner}/{repo}/git/ref/{ref}",
            error_on_not_found=error_on_not_found,
        ):
            return GitReference.from_payload(response.json_data())

        return None

    async def create_git_ref(self, owner: str, repo: str, ref: str, sha: str) -> GitReference:
        """Create a git ref pointing at `sha`.

        A 422 (the ref already exists) is raised as `RequestRejectedError` right away instead of being retried.
        """

        response: ApiResponse = await self._perform_rest_request(
            action="Create git ref",
            url=f"/repos/{owner}/{repo}/git/refs",
            method="POST",
            json_body={"ref": ref, "sha": sha},
            terminal_statuses=frozenset({422}),
        )

        return GitReference.from_payload(response.json_data())

    async def get_repository_contents(self, owner: str, repo: str, path: str = "", ref: str | None = None) -> list[ContentItem]:
        """List a directory of the repository. Raises if the path does not exist."""

        response: ApiResponse = await self._perform_rest_request(
            action="Get repository contents",
            url=f"/repos/{owner}/{repo}/contents/{encode_path(path)}",
            params={"ref": ref} if ref else None,
        )

        payload: Any = response.json_data()  # pyright: ignore[reportAny]

        if not isinstance(payload, list):
            # The path is a file, not a directory.
            return []

        return response.parse_as(list[ContentItem])

    async def get_file(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
        error_on_not_found: bool = False,
    ) -> RepositoryFileWithContent | None:
        """Get a file from a repository.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            path: The path of the file.
            ref: The ref of the branch or tag to get the file from. If not provided, the default branch will be used.
            error_on_not_found: Whether to raise an error if the file is not found.
        """

        response: ApiResponse | None = await self._perform_rest_request(
            action="Get file",
            url=f"/repos/{owner}/{repo}/contents/{encode_path(path)}",
            params={"ref": ref} if ref else None,
            error_on_not_found=error_on_not_found,
        )

        if response is None:
            return None

        payload: Any = response.json_data()  # pyright: ignore[reportAny]

        if not isinstance(payload, dict) or payload.get("type") != "file":  # pyright: ignore[reportUnknownMemberType]
            return None

        return RepositoryFileWithContent.from_payload(payload)  # pyright: ignore[reportUnknownArgumentType]

    async def get_file_text(self, owner: str, repo: str, path: str, ref: str | None = None) -> str | None:
        """Get the decoded text of a file, or None if it does not exist or is not a file."""

        file: RepositoryFileWithContent | None = await self.get_file(owner=owner, repo=repo, path=path, ref=ref)

        return file.content if file else None

    async def get_files(
        self,
        owner: str,
        repo: str,
        paths: Sequence[str],
        ref: str | None = None,
        truncate_characters: int = DEFAULT_TRUNCATE_CHARACTERS,
        concurrency: int | None = None,
    ) -> list[RepositoryFileWithContent]:
        """Get multiple files from a repository with bounded parallelism.

        Files that cannot be fetched are left out of the result rather than failing the batch. The result keeps
        the order of `paths`.
        """

        if not paths:
            return []

        semaphore = asyncio.Semaphore(concurrency or get_fetch_concurrency())

        async def fetch(path: str) -> RepositoryFileWithContent | None:
            async with semaphore:
                return await self.get_file(owner=owner, repo=repo, path=path, ref=ref)

        results: list[RepositoryFileWithContent | BaseException | None] = await asyncio.gather(
            *[fetch(path) for path in paths], return_exceptions=True
        )

        files: list[RepositoryFileWithContent] = []

        for path, result in zip(paths, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, RequestError):
                    raise result
                self.logger.warning(f"Skipping {owner}/{repo}:{path}: {result}")
                continue

            if result is not None:
                files.append(result.truncate(truncate_characters=truncate_characters))

        return files

    async def get_repository_tree(self, owner: str, repo: str, ref: str | None = None) -> RepositoryTree:
        """Get the full (recursive) tree of a repository.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            ref: The ref of the branch or tag to get the tree from. If not provided, the default branch will be used.
        """

        if ref is None:
            ref = await self.get_default_branch(owner=owner, repo=repo)

        response: ApiResponse = await self._perform_rest_request(
            action="Get repository tree",
            url=f"/repos/{owner}/{repo}/git/trees/{ref}",
            params={"recursive": "1"},
        )

        return RepositoryTree.from_git_tree(git_tree=response.json_data())

    async def fork_repository(self, owner: str, repo: str) -> Repository:
        """Fork a repository into the authenticated user's account. GitHub creates the fork asynchronously."""

        response: ApiResponse = await self._perform_rest_request(action="Fork repository", url=f"/repos/{owner}/{repo}/forks", method="POST")

        return Repository.from_payload(response.json_data())

    async def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        branch: str,
        message: str,
        sha: str | None = None,
    ) -> CommitResult:
        """Commit `content` to `path` on `branch`. Pass the current blob `sha` to update an existing file."""

        body: dict[str, Any] = {"message": message, "content": encode_content(content), "branch": branch}

        if sha:
            body["sha"] = sha

        response: ApiResponse = await self._perform_rest_request(
            action="Create or update file",
            url=f"/repos/{owner}/{repo}/contents/{encode_path(path)}",
            method="PUT",
            json_body=body,
        )

        return CommitResult.from_payload(response.json_data(), path=path)

    async def create_pull_request(self, owner: str, repo: str, head: str, base: str, title: str, body: str) -> PullRequest:
        """Open a pull request. `head` is a branch name, or `owner:branch` for a branch on a fork."""

        response: ApiResponse = await self._perform_rest_request(
            action="Create pull request",
            url=f"/repos/{owner}/{repo}/pulls",
            method="POST",
            json_body={"title": title, "head": head, "base": base, "body": body},
        )

        return PullRequest.from_payload(response.json_data())
