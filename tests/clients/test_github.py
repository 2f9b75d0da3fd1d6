import base64
import re

import pytest
from inline_snapshot import snapshot

from gitready.clients.errors.github import RequestError, ResourceNotFoundError
from gitready.clients.github import GitReadyClient
from gitready.clients.models.github import AuthenticatedUser, Repository, RepositoryFileWithContent
from gitready.clients.governor import QuotaSnapshot, RateGovernor
from gitready.models.repository.tree import RepositoryTree
from tests.conftest import (
    START_TIME,
    FakeClock,
    FakeGitHub,
    FakeResponse,
    dump_for_snapshot,
    error_response,
    file_payload,
    repository_payload,
)


class TestRepositories:
    async def test_get_repository(self, client: GitReadyClient, fake_github: FakeGitHub):
        fake_github.add_json("GET", "/repos/octo/app", repository_payload("octo", "app", default_branch="trunk"))

        repository: Repository = await client.get_repository(owner="octo", repo="app")

        assert dump_for_snapshot(repository) == snapshot(
            {
                "owner": "octo",
                "name": "app",
                "full_name": "octo/app",
                "description": "The app project",
                "fork": False,
                "url": "https://github.com/octo/app",
                "stars": 3,
                "forks": 1,
                "language": "Python",
                "default_branch": "trunk",
                "topics": [],
                "pushed_at": "2026-10-01T12:00:00Z",
            }
        )

    async def test_get_repository_missing(self, client: GitReadyClient):
        assert await client.get_repository(owner="octo", repo="missing", error_on_not_found=False) is None

        error_text: str = re.escape(
            "A request error occured. (action: Get repository, message: The resource could not be found., resource: /repos/octo/missing)"
        )

        with pytest.raises(ResourceNotFoundError, match=error_text):
            _ = await client.get_repository(owner="octo", repo="missing")

    async def test_default_branch_falls_back_to_main(self, client: GitReadyClient, fake_github: FakeGitHub):
        payload = repository_payload("octo", "app")
        del payload["default_branch"]
        fake_github.add_json("GET", "/repos/octo/app", payload)

        assert await client.get_default_branch(owner="octo", repo="app") == "main"

    async def test_get_authenticated_user(self, client: GitReadyClient, fake_github: FakeGitHub):
        assert await client.get_authenticated_user() is None

        fake_github.add_json("GET", "/user", {"login": "someone", "name": "Some One"})

        assert await client.get_authenticated_user() == AuthenticatedUser(login="someone", name="Some One")


class TestFiles:
    async def test_get_file(self, client: GitReadyClient, fake_github: FakeGitHub):
        fake_github.add_json("GET", "/repos/octo/app/contents/README.md", file_payload("README.md", "# app\n", sha="abc"))

        file: RepositoryFileWithContent | None = await client.get_file(owner="octo", repo="app", path="README.md")

        assert file == RepositoryFileWithContent(path="README.md", sha="abc", content="# app\n", size=6)

    async def test_get_file_missing(self, client: GitReadyClient):
        assert await client.get_file(owner="octo", repo="app", path="missing.md") is None

    async def test_get_files_skips_failures_and_keeps_order(self, client: GitReadyClient, fake_github: FakeGitHub):
        fake_github.add_json("GET", "/repos/octo/app/contents/b.py", file_payload("b.py", "b" * 50))
        fake_github.add("GET", "/repos/octo/app/contents/broken.py", error_response(500, "Server Error"))
        fake_github.add_json("GET", "/repos/octo/app/contents/a.py", file_payload("a.py", "print('a')\n"))

        files = await client.get_files(owner="octo", repo="app", paths=["b.py", "broken.py", "missing.py", "a.py"], truncate_characters=10)

        assert [(file.path, file.content, file.truncated) for file in files] == [
            ("b.py", "b" * 10, True),
            ("a.py", "print('a')", True),
        ]

    async def test_create_or_update_file(self, client: GitReadyClient, fake_github: FakeGitHub):
        fake_github.add_json(
            "PUT",
            "/repos/octo/app/contents/.github/workflows/ci.yml",
            {"content": {"sha": "new-blob"}, "commit": {"sha": "commit-sha"}},
            status_code=201,
        )

        commit = await client.create_or_update_file(
            owner="octo",
            repo="app",
            path=".github/workflows/ci.yml",
            content="name: CI\n",
            branch="gitready/ci",
            message="ci: add GitHub Actions pipeline",
            sha="old-blob",
        )

        assert commit.commit_sha == "commit-sha"

        [call] = fake_github.calls_to("PUT", "/repos/octo/app/contents/.github/workflows/ci.yml")
        assert call.json == {
            "message": "ci: add GitHub Actions pipeline",
            "content": base64.b64encode(b"name: CI\n").decode(),
            "branch": "gitready/ci",
            "sha": "old-blob",
        }


class TestTree:
    async def test_get_repository_tree(self, client: GitReadyClient, fake_github: FakeGitHub):
        fake_github.add_json("GET", "/repos/octo/app", repository_payload("octo", "app"))
        fake_github.add_json(
            "GET",
            "/repos/octo/app/git/trees/main",
            {
                "sha": "tree-sha",
                "truncated": False,
                "tree": [
                    {"path": "README.md", "type": "blob", "size": 120},
                    {"path": "src", "type": "tree"},
                    {"path": "src/main.py", "type": "blob", "size": 2048},
                    {"path": "vendor/lib", "type": "commit"},
                ],
            },
        )

        tree: RepositoryTree = await client.get_repository_tree(owner="octo", repo="app")

        assert [item.path for item in tree.items] == ["README.md", "src", "src/main.py"]
        assert tree.count_files == 2

        [call] = fake_github.calls_to("GET", "/repos/octo/app/git/trees/main")
        assert call.params == {"recursive": "1"}


async def test_get_rate_limit(client: GitReadyClient, fake_github: FakeGitHub):
    fake_github.add_json("GET", "/rate_limit", {"rate": {"limit": 5000, "remaining": 4321, "reset": 1700003600, "used": 679}})

    assert await client.get_rate_limit() == QuotaSnapshot(remaining=4321, limit=5000, reset_epoch_seconds=1700003600, observed_at=START_TIME)


@pytest.mark.parametrize(
    "response",
    [
        pytest.param(FakeResponse(payload={"resources": {}}), id="missing rate"),
        pytest.param(FakeResponse(payload={"rate": {"limit": 5000}}), id="missing fields"),
        pytest.param(FakeResponse(payload=["rate"]), id="not an object"),
        pytest.param(FakeResponse(), id="empty body"),
    ],
)
async def test_get_rate_limit_malformed(client: GitReadyClient, fake_github: FakeGitHub, response: FakeResponse):
    fake_github.add("GET", "/rate_limit", response)

    with pytest.raises(RequestError, match="Malformed rate limit response"):
        _ = await client.get_rate_limit()


async def test_malformed_rate_limit_refresh_fails_open(
    client: GitReadyClient, fake_github: FakeGitHub, clock: FakeClock, caplog: pytest.LogCaptureFixture
):
    fake_github.add_json("GET", "/rate_limit", {"resources": {}})

    governor = RateGovernor(fetcher=client.get_rate_limit, clock=clock, threshold=10, refresh_timeout=2)

    assert await governor.refresh() is None
    assert governor.snapshot is None
    assert "allowing requests to proceed" in caplog.text
