from enum import StrEnum

from pydantic import BaseModel, Field

from gitready.clients.errors.github import InvalidTransitionError


class ContributionState(StrEnum):
    START = "start"
    BRANCH_CREATED = "branch_created"
    BRANCH_CREATE_FAILED = "branch_create_failed"
    FORKED = "forked"
    WAITING_FOR_FORK = "waiting_for_fork"
    FILE_COMMITTED = "file_committed"
    PULL_REQUEST_OPENED = "pull_request_opened"


class BranchOutcome(StrEnum):
    """What happened when we tried to create the working branch."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FORBIDDEN = "forbidden"


TRANSITIONS: dict[ContributionState, frozenset[ContributionState]] = {
    ContributionState.START: frozenset({ContributionState.BRANCH_CREATED, ContributionState.BRANCH_CREATE_FAILED}),
    ContributionState.BRANCH_CREATE_FAILED: frozenset({ContributionState.FORKED}),
    ContributionState.FORKED: frozenset({ContributionState.WAITING_FOR_FORK}),
    ContributionState.WAITING_FOR_FORK: frozenset({ContributionState.BRANCH_CREATED}),
    ContributionState.BRANCH_CREATED: frozenset({ContributionState.FILE_COMMITTED}),
    ContributionState.FILE_COMMITTED: frozenset({ContributionState.PULL_REQUEST_OPENED}),
    ContributionState.PULL_REQUEST_OPENED: frozenset(),
}


class ContributionPlan(BaseModel):
    """The progress of a single contribution to a single repository."""

    owner: str = Field(description="The owner of the upstream repository.")
    repo: str = Field(description="The name of the upstream repository.")
    action: str = Field(description="The kind of contribution being made.")
    base_branch: str = Field(description="The upstream branch the pull request targets.")
    branch_name: str = Field(description="The working branch the file is committed to.")
    head_owner: str = Field(description="The owner of the repository holding the working branch.")
    head_repo: str = Field(description="The name of the repository holding the working branch.")
    target_path: str = Field(description="The path of the file being contributed.")
    committed_path: str | None = Field(default=None, description="The path of the committed file, once committed.")
    pr_number: int | None = Field(default=None, description="The number of the pull request, once opened.")
    state: ContributionState = Field(default=ContributionState.START, description="The current state of the contribution.")
    history: list[ContributionState] = Field(default_factory=list, description="The states the contribution went through, oldest first.")

    @property
    def on_fork(self) -> bool:
        return self.head_owner != self.owner

    @property
    def head_ref(self) -> str:
        """The head of the pull request. A branch that lives on a fork has to be qualified with the fork's owner."""

        if self.on_fork:
            return f"{self.head_owner}:{self.branch_name}"

        return self.branch_name

    def can_transition_to(self, target: ContributionState) -> bool:
        return target in TRANSITIONS[self.state]

    def transition_to(self, target: ContributionState) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransitionError(current=self.state.value, target=target.value)

        self.history.append(self.state)
        self.state = target
