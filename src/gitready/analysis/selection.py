"""Choose which files of a repository tree are worth reading.

Everything here is pure: the tree comes in as data and nothing is fetched.
"""

import re
from collections.abc import Sequence

from gitready.models.repository.tree import TreeItem

DEFAULT_MAX_FILES = 30
MAX_FILE_SIZE = 100_000
SMALL_FILE_SIZE = 5_000

IMPORTANT_FILE_POINTS = 100
ROLE_FILE_POINTS = 50
SMALL_FILE_POINTS = 20
SOURCE_ROOT_POINTS = 30
TEST_FILE_POINTS = 25

SKIP_DIRECTORIES: tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "out",
    ".next",
    ".nuxt",
    "__pycache__",
    ".venv",
    "venv",
    "env",
    "virtualenv",
    "vendor",
    ".cache",
    "coverage",
    ".nyc_output",
    "target",
    ".idea",
    ".vscode",
    ".gradle",
    "bin",
    "obj",
    "public/assets",
    "static/assets",
    ".turbo",
)

SKIP_FILE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"package-lock\.json$",
        r"yarn\.lock$",
        r"pnpm-lock\.yaml$",
        r"\.min\.(js|css)$",
        r"\.map$",
        r"\.(woff2?|ttf|eot|otf)$",
        r"\.(png|jpe?g|gif|svg|ico|webp|avif)$",
        r"\.(mp[34]|avi|mov|webm)$",
        r"\.(zip|tar|gz|rar|7z)$",
        r"\.(pdf|doc|docx|xls|xlsx)$",
        r"LICENSE(\..*)?$",
        r"\.gitignore$",
        r"\.npmrc$",
        r"\.eslintcache$",
        r"\.DS_Store$",
        r"Thumbs\.db$",
    )
)

IMPORTANT_FILE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^README\.md$",
        r"^package\.json$",
        r"^tsconfig\.json$",
        r"^setup\.py$",
        r"^requirements\.txt$",
        r"^pyproject\.toml$",
        r"^Cargo\.toml$",
        r"^go\.mod$",
        r"^pom\.xml$",
        r"^build\.gradle(\.kts)?$",
        r"^Dockerfile$",
        r"^docker-compose\.ya?ml$",
        r"^\.github/workflows/.+\.ya?ml$",
        r"^(index|main|app|server)\.(ts|tsx|js|jsx|py)$",
        r"^src/(index|main|app|App)\.(ts|tsx|js|jsx)$",
    )
)

ROLE_FILE_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    role: tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)
    for role, patterns in {
        "Frontend": (r"\.(tsx|jsx|vue|svelte)$", r"\.css$", r"\.scss$", r"tailwind\.config"),
        "Backend": (r"\.(py|go|java|rb|rs|php)$", r"^(server|api|routes|controllers)/", r"\.prisma$", r"schema\.(graphql|gql)$"),
        "Fullstack": (r"\.(tsx|jsx|vue|py|go)$", r"^(server|api|client|frontend|backend)/"),
        "DevOps": (r"^\.github/workflows/", r"Dockerfile", r"docker-compose", r"\.ya?ml$", r"terraform", r"Jenkinsfile"),
        "Data Science": (r"\.ipynb$", r"\.py$", r"requirements\.txt$", r"^(notebooks|data|models)/"),
    }.items()
}

SOURCE_ROOT_PATTERN: re.Pattern[str] = re.compile(r"^(src|lib|app)/", re.IGNORECASE)
TEST_FILE_PATTERN: re.Pattern[str] = re.compile(r"\.(test|spec)\.", re.IGNORECASE)

_SKIP_DIRECTORY_SEGMENTS: tuple[tuple[str, ...], ...] = tuple(tuple(directory.split("/")) for directory in SKIP_DIRECTORIES)


def _contains_segments(path_parts: Sequence[str], segments: Sequence[str]) -> bool:
    width: int = len(segments)
    return any(tuple(path_parts[start : start + width]) == tuple(segments) for start in range(len(path_parts) - width + 1))


def should_skip_path(path: str) -> bool:
    """Whether the path lives in a noise directory or names a noise file (lockfiles, media, archives, ...)."""

    path_parts: list[str] = path.split("/")

    if any(_contains_segments(path_parts, segments) for segments in _SKIP_DIRECTORY_SEGMENTS):
        return True

    filename: str = path_parts[-1]

    return any(pattern.search(filename) or pattern.search(path) for pattern in SKIP_FILE_PATTERNS)


def is_important_file(path: str) -> bool:
    return any(pattern.search(path) for pattern in IMPORTANT_FILE_PATTERNS)


def matches_role(path: str, target_role: str) -> bool:
    return any(pattern.search(path) for pattern in ROLE_FILE_PATTERNS.get(target_role, ()))


def is_candidate(item: TreeItem) -> bool:
    if not item.is_file:
        return False

    if should_skip_path(item.path):
        return False

    return not (item.size and item.size > MAX_FILE_SIZE)


def score_file(item: TreeItem, target_role: str) -> int:
    score: int = 0

    if is_important_file(item.path):
        score += IMPORTANT_FILE_POINTS

    if matches_role(item.path, target_role):
        score += ROLE_FILE_POINTS

    # Unknown and zero sizes get no bonus.
    if item.size and item.size < SMALL_FILE_SIZE:
        score += SMALL_FILE_POINTS

    if SOURCE_ROOT_PATTERN.search(item.path):
        score += SOURCE_ROOT_POINTS

    if TEST_FILE_PATTERN.search(item.path):
        score += TEST_FILE_POINTS

    return score


def filter_and_prioritize_files(tree: Sequence[TreeItem], target_role: str, max_files: int = DEFAULT_MAX_FILES) -> list[TreeItem]:
    """Drop noise from the tree and return at most `max_files` files, most relevant first.

    Files with equal scores keep their tree order.
    """

    candidates: list[TreeItem] = [item for item in tree if is_candidate(item)]

    return sorted(candidates, key=lambda item: score_file(item, target_role), reverse=True)[:max_files]
