import base64
from datetime import datetime
from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BRANCH = "main"


def decode_content(content: str) -> str:
    """Decode the base64 body the contents API returns (GitHub wraps it with newlines)."""
    return base64.b64decode(content.replace("\n", "")).decode("utf-8", errors="replace")


def encode_content(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


class Repository(BaseModel):
    """A repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(description="The login of the repository owner.")
    name: str = Field(description="The name of the repository.")
    full_name: str = Field(description="The owner and name of the repository, separated by a slash.")
    description: str | None = Field(default=None, description="The description of the repository.")
    fork: bool = Field(default=False, description="Whether the repository is a fork.")
    url: str | None = Field(default=None, description="The web URL of the repository.")
    stars: int = Field(default=0, description="The number of stars the repository has.")
    forks: int = Field(default=0, description="The number of forks the repository has.")
    language: str | None = Field(default=None, description="The language of the repository.")
    default_branch: str = Field(default=DEFAULT_BRANCH, description="The default branch of the repository.")
    topics: list[str] = Field(default_factory=list, description="The topics of the repository.")
    pushed_at: datetime | None = Field(default=None, description="The date and time the repository was pushed to.")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Self:
        full_name: str = payload["full_name"]
        owner: str = (payload.get("owner") or {}).get("login") or full_name.split("/")[0]

        return cls(
            owner=owner,
            name=payload["name"],
            full_name=full_name,
            description=payload.get("description"),
            fork=payload.get("fork", False),
            url=payload.get("html_url"),
            stars=payload.get("stargazers_count") or 0,
            forks=payload.get("forks_count") or 0,
            language=payload.get("language"),
            default_branch=payload.get("default_branch") or DEFAULT_BRANCH,
            topics=payload.get("topics") or [],
            pushed_at=payload.get("pushed_at"),
        )


class AuthenticatedUser(BaseModel):
    """The user a token acts on behalf of."""

    login: str = Field(description="The login of the user.")
    name: str | None = Field(default=None, description="The display name of the user.")


class GitReference(BaseModel):
    """A git reference."""

    name: str = Field(description="The name of the reference.")
    sha: str = Field(description="The SHA of the reference.")
    ref_type: str = Field(description="The type of the reference.")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Self:
        git_object: dict[str, Any] = payload.get("object") or {}
        return cls(name=payload["ref"], sha=git_object.get("sha") or payload["sha"], ref_type=git_object.get("type") or "commit")


class ContentItem(BaseModel):
    """An entry of a directory listing from the contents API."""

    name: str
    path: str
    type: Literal["file", "dir", "symlink", "submodule"]
    size: int = 0
    sha: str | None = None


class RepositoryFileWithContent(BaseModel):
    """A file with its path and decoded content."""

    path: str = Field(description="The path of the file.")
    sha: str | None = Field(default=None, description="The blob SHA of the file.")
    content: str = Field(description="The content of the file.")
    size: int = Field(description="The size of the file, in bytes.")
    truncated: bool = Field(default=False, description="Whether the content has been truncated.")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Self:
        return cls(
            path=payload["path"],
            sha=payload.get("sha"),
            content=decode_content(payload.get("content") or ""),
            size=payload.get("size") or 0,
        )

    def truncate(self, truncate_characters: int) -> Self:
        if len(self.content) <= truncate_characters:
            return self
        return self.model_copy(update={"content": self.content[:truncate_characters], "truncated": True})


class CommitResult(BaseModel):
    """The outcome of writing a file through the contents API."""

    path: str = Field(description="The path of the written file.")
    content_sha: str | None = Field(default=None, description="The blob SHA of the written file.")
    commit_sha: str | None = Field(default=None, description="The SHA of the commit that wrote the file.")

    @classmethod
    def from_payload(cls, payload: dict[str, Any], path: str) -> Self:
        return cls(
            path=path,
            content_sha=(payload.get("content") or {}).get("sha"),
            commit_sha=(payload.get("commit") or {}).get("sha"),
        )


class PullRequest(BaseModel):
    """A pull request."""

    number: int = Field(description="The number of the pull request.")
    url: str = Field(description="The web URL of the pull request.")
    head: str | None = Field(default=None, description="The head reference of the pull request.")
    base: str | None = Field(default=None, description="The base branch of the pull request.")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Self:
        return cls(
            number=payload["number"],
            url=payload["html_url"],
            head=(payload.get("head") or {}).get("label"),
            base=(payload.get("base") or {}).get("ref"),
        )
