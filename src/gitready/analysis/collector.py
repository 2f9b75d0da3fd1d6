from collections import deque
from collections.abc import Sequence
from logging import Logger, getLogger

from pydantic import BaseModel, Field

from gitready.clients.errors.github import QuotaExhaustedError, RequestError
from gitready.clients.github import GitReadyClient
from gitready.clients.models.github import ContentItem

DEFAULT_MAX_FILES = 60
DEFAULT_MAX_FILE_SIZE = 100_000
DEFAULT_ALLOWED_EXTENSIONS: tuple[str, ...] = (
    ".md",
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".json",
    ".yml",
    ".yaml",
    ".py",
    ".java",
    ".kt",
    ".cs",
)


class ManifestEntry(BaseModel):
    path: str = Field(description="The path of the file, relative to the repository root.")
    size: int = Field(description="The size of the file in bytes, as reported by the contents API.")


class CodeBundle(BaseModel):
    """A bounded selection of a repository's source files, concatenated into one text."""

    manifest: list[ManifestEntry] = Field(default_factory=list, description="The files selected for the bundle, in traversal order.")
    text: str = Field(default="", description="The content of the selected files, each preceded by a header line.")


def format_bundle_section(path: str, content: str) -> str:
    return f"\n\n--- {path} ({len(content)} bytes) ---\n{content}\n"


def has_allowed_extension(name: str, allowed_extensions: Sequence[str]) -> bool:
    lowered: str = name.lower()
    return any(lowered.endswith(extension) for extension in allowed_extensions)


class BoundedTreeCollector:
    """Walks a repository breadth-first through the contents API and bundles a bounded number of its files.

    Directories that cannot be listed and files that cannot be read are skipped. Running out of quota stops the
    walk, since every further call would be refused as well.
    """

    client: GitReadyClient
    max_files: int
    max_file_size: int
    allowed_extensions: tuple[str, ...]
    logger: Logger

    def __init__(
        self,
        client: GitReadyClient,
        max_files: int = DEFAULT_MAX_FILES,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        allowed_extensions: Sequence[str] = DEFAULT_ALLOWED_EXTENSIONS,
        logger: Logger | None = None,
    ):
        self.client = client
        self.max_files = max_files
        self.max_file_size = max_file_size
        self.allowed_extensions = tuple(allowed_extensions)
        self.logger = logger or getLogger(__name__)

    def _accepts(self, item: ContentItem) -> bool:
        if not has_allowed_extension(item.name, self.allowed_extensions):
            return False

        return item.size <= self.max_file_size

    async def _list_directory(self, owner: str, repo: str, path: str) -> list[ContentItem]:
        try:
            return await self.client.get_repository_contents(owner=owner, repo=repo, path=path)
        except QuotaExhaustedError:
            raise
        except RequestError as e:
            self.logger.warning(f"Skipping directory {owner}/{repo}:/{path}: {e}")
            return []

    async def collect_manifest(self, owner: str, repo: str) -> list[ManifestEntry]:
        """Select up to `max_files` files, visiting directories in breadth-first order from the root."""

        pending_directories: deque[str] = deque([""])
        manifest: list[ManifestEntry] = []

        while pending_directories and len(manifest) < self.max_files:
            directory: str = pending_directories.popleft()

            for item in await self._list_directory(owner=owner, repo=repo, path=directory):
                if len(manifest) >= self.max_files:
                    break

                if item.type == "dir":
                    pending_directories.append(item.path)
                elif item.type == "file" and self._accepts(item):
                    manifest.append(ManifestEntry(path=item.path, size=item.size))

        return manifest

    async def _read_file(self, owner: str, repo: str, path: str) -> str | None:
        try:
            return await self.client.get_file_text(owner=owner, repo=repo, path=path)
        except QuotaExhaustedError:
            raise
        except RequestError as e:
            self.logger.warning(f"Skipping file {owner}/{repo}:{path}: {e}")
            return None

    async def collect(self, owner: str, repo: str) -> CodeBundle:
        """Build the code bundle of a repository. File bodies are fetched one at a time."""

        manifest: list[ManifestEntry] = await self.collect_manifest(owner=owner, repo=repo)

        sections: list[str] = []

        for entry in manifest:
            content: str | None = await self._read_file(owner=owner, repo=repo, path=entry.path)

            if not content:
                continue

            sections.append(format_bundle_section(path=entry.path, content=content[: self.max_file_size]))

        self.logger.info(f"Collected {len(sections)} of {len(manifest)} selected files from {owner}/{repo}")

        return CodeBundle(manifest=manifest, text="".join(sections))


async def get_repo_code_bundle(
    client: GitReadyClient,
    owner: str,
    repo: str,
    max_files: int = DEFAULT_MAX_FILES,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    allowed_extensions: Sequence[str] = DEFAULT_ALLOWED_EXTENSIONS,
) -> CodeBundle:
    collector = BoundedTreeCollector(client=client, max_files=max_files, max_file_size=max_file_size, allowed_extensions=allowed_extensions)

    return await collector.collect(owner=owner, repo=repo)
