from logging import Logger
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import get_logger

from gitready.clients.github import GitReadyClient
from gitready.servers.analysis import AnalysisServer
from gitready.servers.contribution import ContributionServer

logger: Logger = get_logger(name=__name__)

mcp: FastMCP[None] = FastMCP[None](name="GitReady MCP")

mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

# One client, and so one rate governor, shared by every tool.
client: GitReadyClient = GitReadyClient()

analysis_server: AnalysisServer = AnalysisServer(client=client, logger=logger)
_ = analysis_server.register_tools(fastmcp=mcp)

contribution_server: ContributionServer = ContributionServer(client=client, logger=logger)
_ = contribution_server.register_tools(fastmcp=mcp)


@click.command()
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"]):
    mcp.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
