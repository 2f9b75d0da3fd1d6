"""Defaults for each kind of contribution: where the file goes and how the commit and pull request are worded."""

import re
from enum import StrEnum

from pydantic import BaseModel, Field

BRANCH_PREFIX = "gitready"
DEFAULT_LANGUAGE = "JavaScript"


class ContributionAction(StrEnum):
    README = "readme"
    TESTS = "tests"
    CI = "ci"


COMMIT_MESSAGES: dict[ContributionAction, str] = {
    ContributionAction.README: "docs: add professional README with setup & usage",
    ContributionAction.TESTS: "test: add basic example tests",
    ContributionAction.CI: "ci: add GitHub Actions pipeline",
}


def branch_name_for(action: ContributionAction) -> str:
    return f"{BRANCH_PREFIX}/{action.value}"


def default_path_for(action: ContributionAction, language: str | None = None) -> str:
    match action:
        case ContributionAction.README:
            return "README.md"
        case ContributionAction.CI:
            return ".github/workflows/ci.yml"
        case ContributionAction.TESTS:
            language = language or DEFAULT_LANGUAGE
            if re.search("typescript", language, re.IGNORECASE):
                return "tests/example.test.ts"
            if re.search("python", language, re.IGNORECASE):
                return "tests/test_example.py"
            return "tests/example.test.js"


def pull_request_title(action: ContributionAction, repo: str) -> str:
    return f"chore({action.value}): auto-generated {action.value} for {repo}"


def pull_request_body(action: ContributionAction, path: str) -> str:
    return f"This PR was created automatically to improve {action.value.upper()}.\n\nChanges:\n- {path}\n\nFeel free to edit and merge."


class ContributionRequest(BaseModel):
    """A file to propose to a repository through a pull request."""

    owner: str = Field(description="The owner of the repository to contribute to.")
    repo: str = Field(description="The name of the repository to contribute to.")
    action: ContributionAction = Field(description="The kind of contribution.")
    content: str = Field(description="The content of the file to commit.")
    language: str | None = Field(default=None, description="The main language of the repository, used to place test files.")
    path: str | None = Field(default=None, description="Where to write the file. Defaults to a path chosen for the action.")
    commit_message: str | None = Field(default=None, description="The commit message. Defaults to a message chosen for the action.")
    title: str | None = Field(default=None, description="The title of the pull request.")
    body: str | None = Field(default=None, description="The body of the pull request.")

    def resolved_path(self, repository_language: str | None = None) -> str:
        return self.path or default_path_for(self.action, language=self.language or repository_language)

    def resolved_commit_message(self) -> str:
        return self.commit_message or COMMIT_MESSAGES[self.action]

    def resolved_title(self) -> str:
        return self.title or pull_request_title(self.action, repo=self.repo)

    def resolved_body(self, path: str) -> str:
        return self.body or pull_request_body(self.action, path=path)
