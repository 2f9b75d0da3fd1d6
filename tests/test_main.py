from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastmcp import FastMCP
from fastmcp.client import Client
from fastmcp.client.transports import FastMCPTransport


@pytest.fixture
def mcp(monkeypatch: pytest.MonkeyPatch) -> FastMCP[Any]:
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")

    from gitready.main import mcp

    return mcp


@pytest.fixture
async def main_mcp_client(mcp: FastMCP[Any]) -> AsyncGenerator[Client[FastMCPTransport], Any]:
    async with Client[FastMCPTransport](transport=mcp) as mcp_client:
        yield mcp_client


async def test_list_tools(main_mcp_client: Client[FastMCPTransport]):
    list_tools = await main_mcp_client.list_tools()

    assert sorted(tool.name for tool in list_tools) == [
        "apply_contribution",
        "get_code_bundle",
        "get_deep_analysis_files",
        "rank_repositories",
        "select_files",
    ]


def test_tools_share_one_client(mcp: FastMCP[Any]):
    from gitready.main import analysis_server, contribution_server

    assert mcp is not None
    assert analysis_server.client is contribution_server.workflow.client
