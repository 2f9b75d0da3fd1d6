from logging import Logger, getLogger
from typing import Self

from pydantic import BaseModel, Field, model_validator

from gitready.clients.errors.github import (
    ClientError,
    ErrorReport,
    ForbiddenError,
    IdentityResolutionFailedError,
    RequestRejectedError,
    ResourceNotFoundError,
    RetriesExhaustedError,
)
from gitready.clients.github import GitReadyClient
from gitready.clients.models.github import (
    AuthenticatedUser,
    CommitResult,
    GitReference,
    PullRequest,
    Repository,
    RepositoryFileWithContent,
)
from gitready.contribution.actions import ContributionRequest, branch_name_for
from gitready.contribution.plan import BranchOutcome, ContributionPlan, ContributionState
from gitready.settings import get_fork_timeout_seconds
from gitready.utilities.polling import poll_until

ALREADY_EXISTS_STATUS = 422
FORK_POLL_INTERVAL_SECONDS = 1.0


class ContributionResult(BaseModel):
    pull_request_url: str = Field(description="The web URL of the opened pull request.")
    pull_request_number: int = Field(description="The number of the opened pull request.")


class ContributionOutcome(BaseModel):
    """The result of a contribution, or the reason it failed, along with how far it got."""

    result: ContributionResult | None = Field(default=None, description="The opened pull request, if the contribution succeeded.")
    error: ErrorReport | None = Field(default=None, description="Why the contribution failed, if it failed.")
    plan: ContributionPlan | None = Field(default=None, description="The state of the contribution when it finished.")

    @model_validator(mode="after")
    def check_result_or_error(self) -> Self:
        if (self.result is None) == (self.error is None):
            msg = "A contribution outcome carries exactly one of result or error."
            raise ValueError(msg)
        return self


class ContributionWorkflow:
    """Proposes a single file to a repository: branch, commit, pull request.

    When the token cannot create branches on the repository, the repository is forked into the token's account and
    the work happens on the fork instead. Steps run strictly one after the other and any failure aborts the
    contribution; branches and forks created along the way are left in place.
    """

    client: GitReadyClient
    fork_timeout: float
    fork_poll_interval: float
    logger: Logger

    def __init__(
        self,
        client: GitReadyClient,
        fork_timeout: float | None = None,
        fork_poll_interval: float = FORK_POLL_INTERVAL_SECONDS,
        logger: Logger | None = None,
    ):
        self.client = client
        self.fork_timeout = fork_timeout if fork_timeout is not None else get_fork_timeout_seconds()
        self.fork_poll_interval = fork_poll_interval
        self.logger = logger or getLogger(__name__)

    async def plan(self, request: ContributionRequest) -> ContributionPlan:
        """Resolve the base branch and target path of a contribution."""

        repository: Repository = await self.client.get_repository(owner=request.owner, repo=request.repo, error_on_not_found=True)

        return ContributionPlan(
            owner=request.owner,
            repo=request.repo,
            action=request.action.value,
            base_branch=repository.default_branch,
            branch_name=branch_name_for(request.action),
            head_owner=request.owner,
            head_repo=request.repo,
            target_path=request.resolved_path(repository_language=repository.language),
        )

    async def run(self, plan: ContributionPlan, request: ContributionRequest) -> ContributionResult:
        """Carry a planned contribution through to an open pull request, advancing `plan` as it goes."""

        outcome: BranchOutcome = await self.create_branch(
            owner=plan.owner, repo=plan.repo, branch=plan.branch_name, base_branch=plan.base_branch
        )

        if outcome == BranchOutcome.FORBIDDEN:
            plan.transition_to(ContributionState.BRANCH_CREATE_FAILED)
            await self.fork_and_create_branch(plan)
        else:
            plan.transition_to(ContributionState.BRANCH_CREATED)

        await self.commit_file(plan, content=request.content, message=request.resolved_commit_message())

        pull_request: PullRequest = await self.client.create_pull_request(
            owner=plan.owner,
            repo=plan.repo,
            head=plan.head_ref,
            base=plan.base_branch,
            title=request.resolved_title(),
            body=request.resolved_body(path=plan.target_path),
        )

        plan.pr_number = pull_request.number
        plan.transition_to(ContributionState.PULL_REQUEST_OPENED)

        self.logger.info(f"Opened pull request #{pull_request.number} on {plan.owner}/{plan.repo} from {plan.head_ref}")

        return ContributionResult(pull_request_url=pull_request.url, pull_request_number=pull_request.number)

    async def contribute(self, request: ContributionRequest) -> ContributionResult:
        """Run a contribution, raising the first failure."""

        plan: ContributionPlan = await self.plan(request)

        return await self.run(plan, request)

    async def apply(self, request: ContributionRequest) -> ContributionOutcome:
        """Run a contribution and report the failure, if any, as a structured error instead of raising it."""

        plan: ContributionPlan | None = None

        try:
            plan = await self.plan(request)
            result: ContributionResult = await self.run(plan, request)
        except ClientError as e:
            self.logger.exception(f"Contribution of {request.action.value} to {request.owner}/{request.repo} failed")
            return ContributionOutcome(error=ErrorReport.from_error(e), plan=plan)

        return ContributionOutcome(result=result, plan=plan)

    async def create_branch(self, owner: str, repo: str, branch: str, base_branch: str) -> BranchOutcome:
        """Create `branch` from the head of `base_branch`.

        A branch that already exists is accepted as long as it can be found, so that a contribution can be retried.
        Any failure other than the token lacking write access is raised.
        """

        base_ref: GitReference = await self.client.get_git_ref(owner=owner, repo=repo, ref=f"heads/{base_branch}", error_on_not_found=True)

        try:
            _ = await self.client.create_git_ref(owner=owner, repo=repo, ref=f"refs/heads/{branch}", sha=base_ref.sha)
        except ForbiddenError as e:
            self.logger.info(f"Cannot create {branch} on {owner}/{repo}: {e}")
            return BranchOutcome.FORBIDDEN
        except RequestRejectedError as e:
            if e.status_code != ALREADY_EXISTS_STATUS:
                raise

            existing_ref: GitReference | None = await self.client.get_git_ref(owner=owner, repo=repo, ref=f"heads/{branch}")

            if existing_ref is None:
                raise

            if existing_ref.sha != base_ref.sha:
                self.logger.warning(
                    f"Reusing existing branch {branch} on {owner}/{repo} at {existing_ref.sha}, which differs from {base_branch} at {base_ref.sha}"
                )

            return BranchOutcome.ALREADY_EXISTS

        return BranchOutcome.CREATED

    async def fork_and_create_branch(self, plan: ContributionPlan) -> None:
        """Fork the upstream repository into the token's account and create the working branch there."""

        user: AuthenticatedUser | None = await self.client.get_authenticated_user()

        if user is None:
            raise IdentityResolutionFailedError

        fork: Repository = await self.client.fork_repository(owner=plan.owner, repo=plan.repo)

        plan.head_owner = fork.owner or user.login
        plan.head_repo = fork.name
        plan.transition_to(ContributionState.FORKED)

        plan.transition_to(ContributionState.WAITING_FOR_FORK)
        fork = await self.wait_for_repository(owner=plan.head_owner, repo=plan.head_repo)

        outcome: BranchOutcome = await self.create_branch(
            owner=plan.head_owner, repo=plan.head_repo, branch=plan.branch_name, base_branch=fork.default_branch
        )

        if outcome == BranchOutcome.FORBIDDEN:
            raise ForbiddenError(action="Create branch on fork", resource=f"{plan.head_owner}/{plan.head_repo}")

        plan.transition_to(ContributionState.BRANCH_CREATED)

    async def wait_for_repository(self, owner: str, repo: str) -> Repository:
        """Poll a (freshly forked) repository until GitHub serves it or the fork timeout elapses.

        The request retries of each poll stop at the same deadline as the poll itself."""

        async def get_fork(deadline: float) -> Repository:
            return await self.client.get_repository(owner=owner, repo=repo, error_on_not_found=True, deadline=deadline)

        return await poll_until(
            get_fork,
            until=lambda _: True,
            interval=self.fork_poll_interval,
            timeout=self.fork_timeout,
            description=f"Wait for fork {owner}/{repo}",
            clock=self.client.clock,
            retry_on=(ResourceNotFoundError, RetriesExhaustedError),
        )

    async def commit_file(self, plan: ContributionPlan, content: str, message: str) -> CommitResult:
        """Write the file to the working branch, updating it in place if the branch already has it."""

        existing: RepositoryFileWithContent | None = await self.client.get_file(
            owner=plan.head_owner, repo=plan.head_repo, path=plan.target_path, ref=plan.branch_name
        )

        commit: CommitResult = await self.client.create_or_update_file(
            owner=plan.head_owner,
            repo=plan.head_repo,
            path=plan.target_path,
            content=content,
            branch=plan.branch_name,
            message=message,
            sha=existing.sha if existing else None,
        )

        plan.committed_path = commit.path
        plan.transition_to(ContributionState.FILE_COMMITTED)

        return commit
