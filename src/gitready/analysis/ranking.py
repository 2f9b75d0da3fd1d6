"""Importance ranking of a developer's repositories.

Decides which repositories are worth the cost of a deep, code-level analysis. The score is a sum of independent
signals; the thresholds and weights below are part of the ranking contract and changing any of them changes which
repositories get analyzed.
"""

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RANK_LIMIT = 3

ROLE_LANGUAGES: dict[str, frozenset[str]] = {
    "Frontend": frozenset({"TypeScript", "JavaScript", "Vue", "CSS", "SCSS"}),
    "Backend": frozenset({"Python", "Go", "Java", "Ruby", "Rust", "PHP", "C#"}),
    "Fullstack": frozenset({"TypeScript", "JavaScript", "Python", "Go"}),
    "DevOps": frozenset({"Shell", "Python", "Go", "HCL"}),
    "Data Science": frozenset({"Python", "R", "Jupyter Notebook", "Julia"}),
}

STARS_HIGH, STARS_HIGH_POINTS = 10, 30
STARS_LOW, STARS_LOW_POINTS = 3, 15

FORKS_HIGH, FORKS_HIGH_POINTS = 5, 25
FORKS_LOW, FORKS_LOW_POINTS = 2, 10

RECENT_DAYS, RECENT_POINTS = 30, 20
ACTIVE_DAYS, ACTIVE_POINTS = 90, 10

COMMITS_HIGH, COMMITS_HIGH_POINTS = 50, 20
COMMITS_LOW, COMMITS_LOW_POINTS = 20, 10

ROLE_LANGUAGE_POINTS = 15
README_POINTS = 10
TESTS_POINTS = 15
CI_POINTS = 10
TOPICS_POINTS = 5


class RepositoryDescriptor(BaseModel):
    """What upstream metadata collection knows about a repository."""

    model_config = ConfigDict(frozen=True)

    full_name: str = Field(description="The owner and name of the repository, separated by a slash.")
    is_fork: bool = Field(default=False, description="Whether the repository is a fork.")
    stars: int = Field(default=0, description="The number of stars the repository has.")
    forks: int = Field(default=0, description="The number of forks the repository has.")
    language: str | None = Field(default=None, description="The primary language of the repository.")
    pushed_at: datetime = Field(description="The date and time the repository was last pushed to.")
    topics: tuple[str, ...] = Field(default=(), description="The topics of the repository.")
    has_readme: bool = Field(default=False, description="Whether the repository has a README.")
    has_tests: bool = Field(default=False, description="Whether the repository has a test directory.")
    has_ci: bool = Field(default=False, description="Whether the repository has CI workflows.")
    commit_count: int = Field(default=0, description="The number of commits by the developer.")
    technologies: tuple[str, ...] = Field(default=(), description="Technologies detected in the repository.")


class ImportanceScore(BaseModel):
    repository: RepositoryDescriptor
    score: int
    reasons: list[str] = Field(description="Why the repository scored what it did, in the order the signals were checked.")


def _days_since(moment: datetime, now: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return (now - moment) / timedelta(days=1)


def calculate_repo_importance(repository: RepositoryDescriptor, target_role: str, now: datetime | None = None) -> ImportanceScore:
    """Score a repository for a target role. Higher is more worth a deep analysis."""

    now = now or datetime.now(tz=UTC)

    score: int = 0
    reasons: list[str] = []

    if repository.stars >= STARS_HIGH:
        score += STARS_HIGH_POINTS
        reasons.append(f"{repository.stars} stars - community validated")
    elif repository.stars >= STARS_LOW:
        score += STARS_LOW_POINTS
        reasons.append(f"{repository.stars} stars")

    if repository.forks >= FORKS_HIGH:
        score += FORKS_HIGH_POINTS
        reasons.append(f"{repository.forks} forks - others are using this")
    elif repository.forks >= FORKS_LOW:
        score += FORKS_LOW_POINTS
        reasons.append(f"{repository.forks} forks")

    days_since_push: float = _days_since(repository.pushed_at, now)

    if days_since_push < RECENT_DAYS:
        score += RECENT_POINTS
        reasons.append("Recently active")
    elif days_since_push < ACTIVE_DAYS:
        score += ACTIVE_POINTS
        reasons.append("Active in last 3 months")

    if repository.commit_count >= COMMITS_HIGH:
        score += COMMITS_HIGH_POINTS
        reasons.append(f"{repository.commit_count} commits - substantial work")
    elif repository.commit_count >= COMMITS_LOW:
        score += COMMITS_LOW_POINTS
        reasons.append(f"{repository.commit_count} commits")

    if repository.language and repository.language in ROLE_LANGUAGES.get(target_role, frozenset()):
        score += ROLE_LANGUAGE_POINTS
        reasons.append(f"{repository.language} matches {target_role} role")

    if repository.has_readme:
        score += README_POINTS
        reasons.append("Has README")

    if repository.has_tests:
        score += TESTS_POINTS
        reasons.append("Has tests")

    if repository.has_ci:
        score += CI_POINTS
        reasons.append("Has CI/CD")

    if repository.topics:
        score += TOPICS_POINTS
        reasons.append("Uses topics for organization")

    return ImportanceScore(repository=repository, score=score, reasons=reasons)


def rank_repos_by_importance(
    repositories: Sequence[RepositoryDescriptor],
    target_role: str,
    limit: int = DEFAULT_RANK_LIMIT,
    now: datetime | None = None,
) -> list[ImportanceScore]:
    """Return the `limit` most important repositories, highest score first. Ties keep their input order."""

    now = now or datetime.now(tz=UTC)

    scored: list[ImportanceScore] = [calculate_repo_importance(repository, target_role, now=now) for repository in repositories]

    return sorted(scored, key=lambda importance: importance.score, reverse=True)[:limit]
