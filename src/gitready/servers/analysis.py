from logging import Logger
from typing import Annotated, Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from gitready.analysis.collector import DEFAULT_MAX_FILE_SIZE, CodeBundle, get_repo_code_bundle
from gitready.analysis.collector import DEFAULT_MAX_FILES as DEFAULT_BUNDLE_MAX_FILES
from gitready.analysis.deep import DEFAULT_ROLE, DeepAnalysisInput, prepare_deep_analysis
from gitready.analysis.deep import DEFAULT_MAX_FILES as DEFAULT_DEEP_ANALYSIS_MAX_FILES
from gitready.analysis.ranking import DEFAULT_RANK_LIMIT, ImportanceScore, RepositoryDescriptor, rank_repos_by_importance
from gitready.analysis.selection import DEFAULT_MAX_FILES as DEFAULT_SELECTION_MAX_FILES
from gitready.analysis.selection import filter_and_prioritize_files
from gitready.clients.github import DEFAULT_TRUNCATE_CHARACTERS, GitReadyClient
from gitready.models.repository.tree import RepositoryTree, TreeItem
from gitready.servers.shared.annotations import MAX_FILE_SIZE, MAX_FILES, OWNER, REF, REPO, ROLE, TRUNCATE_CHARACTERS

REPOSITORIES = Annotated[
    list[RepositoryDescriptor],
    Field(description="The repositories to rank, with the metadata collected about each of them."),
]
LIMIT = Annotated[int, Field(description="The number of top-ranked repositories to return.")]


class AnalysisServer:
    client: GitReadyClient
    logger: Logger

    def __init__(self, client: GitReadyClient | None = None, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.client = client or GitReadyClient()

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.rank_repositories))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.select_files))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_code_bundle))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_deep_analysis_files))

        return fastmcp

    def rank_repositories(self, repositories: REPOSITORIES, target_role: ROLE, limit: LIMIT = DEFAULT_RANK_LIMIT) -> list[ImportanceScore]:
        """Rank repositories by how much they would impress a recruiter hiring for the role, and return the top ones."""

        ranked: list[ImportanceScore] = rank_repos_by_importance(repositories=repositories, target_role=target_role, limit=limit)

        self.logger.info(f"Ranked {len(repositories)} repositories for {target_role}")

        return ranked

    async def select_files(
        self,
        owner: OWNER,
        repo: REPO,
        target_role: ROLE = DEFAULT_ROLE,
        max_files: MAX_FILES = DEFAULT_SELECTION_MAX_FILES,
        ref: REF = None,
    ) -> list[TreeItem]:
        """Pick the files of a repository most worth reading for the role, skipping dependencies, build output and assets."""

        tree: RepositoryTree = await self.client.get_repository_tree(owner=owner, repo=repo, ref=ref)

        return filter_and_prioritize_files(tree=tree.files, target_role=target_role, max_files=max_files)

    async def get_code_bundle(
        self,
        owner: OWNER,
        repo: REPO,
        max_files: MAX_FILES = DEFAULT_BUNDLE_MAX_FILES,
        max_file_size: MAX_FILE_SIZE = DEFAULT_MAX_FILE_SIZE,
    ) -> CodeBundle:
        """Walk a repository from its root and bundle the content of its source and documentation files into one text."""

        return await get_repo_code_bundle(client=self.client, owner=owner, repo=repo, max_files=max_files, max_file_size=max_file_size)

    async def get_deep_analysis_files(
        self,
        owner: OWNER,
        repo: REPO,
        target_role: ROLE = DEFAULT_ROLE,
        max_files: MAX_FILES = DEFAULT_DEEP_ANALYSIS_MAX_FILES,
        truncate_characters: TRUNCATE_CHARACTERS = DEFAULT_TRUNCATE_CHARACTERS,
    ) -> DeepAnalysisInput:
        """Get an overview of a repository's tree and the content of its most relevant files for a code review."""

        return await prepare_deep_analysis(
            client=self.client,
            owner=owner,
            repo=repo,
            role=target_role,
            max_files=max_files,
            truncate_characters=truncate_characters,
        )
