import base64
import json
from dataclasses import dataclass
from typing import Any

import httpx
import pytest
from githubkit.exception import RequestFailed
from pydantic import BaseModel

from gitready.clients.github import GitReadyClient
from gitready.clients.governor import RateGovernor

API_BASE_URL = "https://api.github.com"
START_TIME = 1_700_000_000.0


class FakeClock:
    """A clock that only moves when something sleeps on it."""

    def __init__(self, start: float = START_TIME):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds


class FakeResponse:
    """Quacks like a githubkit `Response`: wraps a real `httpx.Response` for the attributes the client and
    `RequestFailed` read."""

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,  # pyright: ignore[reportAny]
        headers: dict[str, str] | None = None,
        method: str = "GET",
        url: str = "/",
    ):
        self.raw_request = httpx.Request(method=method, url=API_BASE_URL + url)
        self.raw_response = httpx.Response(
            status_code=status_code,
            headers=headers,
            content=json.dumps(payload).encode() if payload is not None else b"",
            request=self.raw_request,
        )

    @property
    def status_code(self) -> int:
        return self.raw_response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.raw_response.headers

    @property
    def content(self) -> bytes:
        return self.raw_response.content

    @property
    def text(self) -> str:
        return self.raw_response.text

    @property
    def _status_reason(self) -> str:
        return self.raw_response.reason_phrase


@dataclass
class RecordedCall:
    method: str
    url: str
    params: dict[str, Any] | None
    json: dict[str, Any] | None


class FakeGitHub:
    """An in-memory stand-in for `githubkit.GitHub.arequest`.

    Each route holds a queue of responses (or exceptions to raise). The last entry of a queue is repeated once the
    others are used up. Unknown routes answer 404, like the API does.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[FakeResponse | Exception]] = {}
        self.calls: list[RecordedCall] = []

    def add(self, method: str, url: str, *responses: FakeResponse | Exception) -> None:
        self.routes.setdefault((method, url), []).extend(responses)

    def add_json(self, method: str, url: str, payload: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> None:  # pyright: ignore[reportAny]
        self.add(method, url, FakeResponse(status_code=status_code, payload=payload, headers=headers, method=method, url=url))

    def calls_to(self, method: str, url: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.method == method and call.url == url]

    async def arequest(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> FakeResponse:
        self.calls.append(RecordedCall(method=method, url=url, params=params, json=json))

        queue: list[FakeResponse | Exception] | None = self.routes.get((method, url))

        if not queue:
            response: FakeResponse | Exception = FakeResponse(status_code=404, payload={"message": "Not Found"}, method=method, url=url)
        elif len(queue) > 1:
            response = queue.pop(0)
        else:
            response = queue[0]

        if isinstance(response, Exception):
            raise response

        if response.status_code >= 400:
            raise RequestFailed(response)  # pyright: ignore[reportArgumentType]

        return response


def error_response(status_code: int, message: str, method: str = "GET", url: str = "/", headers: dict[str, str] | None = None) -> FakeResponse:
    return FakeResponse(status_code=status_code, payload={"message": message}, headers=headers, method=method, url=url)


def quota_headers(remaining: int, limit: int = 5000, reset: int = int(START_TIME) + 3600) -> dict[str, str]:
    return {"X-RateLimit-Remaining": str(remaining), "X-RateLimit-Limit": str(limit), "X-RateLimit-Reset": str(reset)}


def repository_payload(
    owner: str,
    name: str,
    default_branch: str = "main",
    language: str | None = "Python",
    fork: bool = False,
) -> dict[str, Any]:
    return {
        "name": name,
        "full_name": f"{owner}/{name}",
        "owner": {"login": owner},
        "html_url": f"https://github.com/{owner}/{name}",
        "description": f"The {name} project",
        "fork": fork,
        "stargazers_count": 3,
        "forks_count": 1,
        "language": language,
        "default_branch": default_branch,
        "topics": [],
        "pushed_at": "2026-10-01T12:00:00Z",
    }


def ref_payload(ref: str, sha: str) -> dict[str, Any]:
    return {"ref": ref, "object": {"sha": sha, "type": "commit"}}


def file_payload(path: str, content: str, sha: str = "blob-sha") -> dict[str, Any]:
    return {
        "type": "file",
        "name": path.split("/")[-1],
        "path": path,
        "sha": sha,
        "size": len(content.encode()),
        "encoding": "base64",
        "content": base64.encodebytes(content.encode()).decode(),
    }


def directory_entry(path: str, entry_type: str = "file", size: int = 100) -> dict[str, Any]:
    return {"type": entry_type, "name": path.split("/")[-1], "path": path, "size": size if entry_type == "file" else 0, "sha": f"sha-{path}"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def governor(clock: FakeClock) -> RateGovernor:
    return RateGovernor(clock=clock, threshold=10)


@pytest.fixture
def client(fake_github: FakeGitHub, governor: RateGovernor, clock: FakeClock) -> GitReadyClient:
    return GitReadyClient(githubkit_client=fake_github, governor=governor, clock=clock, max_attempts=3)  # pyright: ignore[reportArgumentType]


def handle_exclude_keys(dictionary: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return dictionary
    return {key: value for key, value in dictionary.items() if key not in exclude_keys}


def dump_for_snapshot(
    basemodel: None | BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,  # pyright: ignore[reportAny]
) -> dict[str, Any] | None:
    if basemodel is None:
        return None

    return handle_exclude_keys(basemodel.model_dump(mode="json", exclude_none=exclude_none, **dump_kwargs), exclude_keys)  # pyright: ignore[reportAny]

