from logging import Logger
from typing import Annotated, Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from gitready.clients.github import GitReadyClient
from gitready.contribution.actions import ContributionAction, ContributionRequest
from gitready.contribution.workflow import ContributionOutcome, ContributionWorkflow
from gitready.servers.shared.annotations import OWNER, REPO

ACTION = Annotated[ContributionAction, Field(description="What to contribute: a README, example tests or a CI pipeline.")]
CONTENT = Annotated[str, Field(description="The content of the file to propose.")]
LANGUAGE = Annotated[
    str | None,
    Field(description="The main language of the repository, used to name test files. Defaults to the language GitHub reports."),
]
PATH = Annotated[str | None, Field(description="Where to write the file. If not provided, a conventional path for the action is used.")]


class ContributionServer:
    workflow: ContributionWorkflow
    logger: Logger

    def __init__(self, client: GitReadyClient | None = None, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.workflow = ContributionWorkflow(client=client or GitReadyClient())

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.apply_contribution))

        return fastmcp

    async def apply_contribution(
        self,
        owner: OWNER,
        repo: REPO,
        action: ACTION,
        content: CONTENT,
        language: LANGUAGE = None,
        path: PATH = None,
    ) -> ContributionOutcome:
        """Propose a file to a repository through a pull request, forking the repository if the token cannot push to it."""

        request = ContributionRequest(owner=owner, repo=repo, action=action, content=content, language=language, path=path)

        outcome: ContributionOutcome = await self.workflow.apply(request)

        if outcome.error:
            self.logger.warning(f"Contribution to {owner}/{repo} failed: {outcome.error.kind}")

        return outcome
