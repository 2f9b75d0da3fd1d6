"""Prepare the input of a deep, code-level review of a single repository.

The review itself happens elsewhere; this module decides what it gets to see: an overview of the tree and the
content of the most relevant files.
"""

from collections.abc import Sequence
from logging import Logger

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

from gitready.analysis.selection import filter_and_prioritize_files, should_skip_path
from gitready.clients.github import GitReadyClient
from gitready.clients.models.github import RepositoryFileWithContent
from gitready.models.repository.tree import RepositoryTree, TreeItem

logger: Logger = get_logger(__name__)

DEFAULT_ROLE = "Fullstack"
DEFAULT_MAX_FILES = 25
DEFAULT_TRUNCATE_CHARACTERS = 30000

OVERVIEW_MAX_DIRECTORIES = 15
OVERVIEW_MAX_FILES_PER_DIRECTORY = 10
ROOT_DIRECTORY = "."


class AnalyzedFile(BaseModel):
    path: str = Field(description="The path of the file, relative to the repository root.")
    content: str = Field(description="The content of the file, possibly truncated.")


class DeepAnalysisInput(BaseModel):
    """What a deep review of a repository is based on."""

    tree_overview: str = Field(description="A condensed listing of the repository's directories and files.")
    files: list[AnalyzedFile] = Field(default_factory=list, description="The most relevant files of the repository and their content.")
    files_analyzed: int = Field(description="The number of files whose content could be fetched.")
    total_files: int = Field(description="The number of files in the repository tree.")


def build_tree_overview(
    items: Sequence[TreeItem],
    max_directories: int = OVERVIEW_MAX_DIRECTORIES,
    max_files_per_directory: int = OVERVIEW_MAX_FILES_PER_DIRECTORY,
) -> str:
    """Render a short, sorted listing of the files per directory, leaving out noise paths.

    Example:
        Root:
          - README.md
        src/
          - main.py
    """

    files_by_directory: dict[str, list[str]] = {}

    for item in items:
        if not item.is_file or should_skip_path(item.path):
            continue

        directory_files: list[str] = files_by_directory.setdefault(item.directory or ROOT_DIRECTORY, [])

        if len(directory_files) < max_files_per_directory:
            directory_files.append(item.name)

    sorted_directories: list[str] = sorted(files_by_directory)

    lines: list[str] = []

    for directory in sorted_directories[:max_directories]:
        lines.append("Root:" if directory == ROOT_DIRECTORY else f"{directory}/")

        files: list[str] = files_by_directory[directory]
        lines.extend(f"  - {file}" for file in files)

        if len(files) >= max_files_per_directory:
            lines.append("  ... and more files")

    if len(sorted_directories) > max_directories:
        lines.append(f"... and {len(sorted_directories) - max_directories} more directories")

    return "\n".join(lines)


async def prepare_deep_analysis(
    client: GitReadyClient,
    owner: str,
    repo: str,
    role: str = DEFAULT_ROLE,
    max_files: int = DEFAULT_MAX_FILES,
    truncate_characters: int = DEFAULT_TRUNCATE_CHARACTERS,
) -> DeepAnalysisInput:
    """Fetch the tree of the default branch, pick the most relevant files for `role` and fetch their content."""

    tree: RepositoryTree = await client.get_repository_tree(owner=owner, repo=repo)

    if tree.truncated:
        logger.warning(f"The tree of {owner}/{repo} is truncated, some files will not be considered")

    selected: list[TreeItem] = filter_and_prioritize_files(tree=tree.files, target_role=role, max_files=max_files)

    logger.info(f"Selected {len(selected)} of {tree.count_files} files from {owner}/{repo} for a {role} review")

    files: list[RepositoryFileWithContent] = await client.get_files(
        owner=owner,
        repo=repo,
        paths=[item.path for item in selected],
        truncate_characters=truncate_characters,
    )

    return DeepAnalysisInput(
        tree_overview=build_tree_overview(tree.items),
        files=[AnalyzedFile(path=file.path, content=file.content) for file in files],
        files_analyzed=len(files),
        total_files=tree.count_files,
    )
