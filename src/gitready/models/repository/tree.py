from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field


def get_dir_and_file_from_path(path: str) -> tuple[str, str]:
    path_parts = path.split("/")
    directory_path = "/".join(path_parts[:-1])
    file_path = path_parts[-1]
    return directory_path, file_path


class TreeItem(BaseModel):
    """A single entry of a repository tree."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The path of the entry, relative to the repository root.")
    kind: Literal["blob", "tree"] = Field(description="Whether the entry is a file (blob) or a directory (tree).")
    size: int | None = Field(default=None, description="The size of the file in bytes. Directories have no size.")

    @property
    def is_file(self) -> bool:
        return self.kind == "blob"

    @property
    def name(self) -> str:
        return get_dir_and_file_from_path(self.path)[1]

    @property
    def directory(self) -> str:
        return get_dir_and_file_from_path(self.path)[0]


class RepositoryTree(BaseModel):
    items: list[TreeItem]
    truncated: bool = Field(
        default=False,
        description="Whether GitHub truncated the tree. If true, the tree does not contain all files.",
    )

    @classmethod
    def from_git_tree(cls, git_tree: dict[str, Any]) -> Self:
        """Build a tree from a `git/trees` payload, ignoring submodules (commits) and other non file/directory entries."""

        items: list[TreeItem] = [
            TreeItem(path=tree_item["path"], kind=tree_item["type"], size=tree_item.get("size"))
            for tree_item in git_tree.get("tree", [])
            if tree_item.get("type") in ("blob", "tree")
        ]

        return cls(items=items, truncated=bool(git_tree.get("truncated", False)))

    @property
    def files(self) -> list[TreeItem]:
        return [item for item in self.items if item.is_file]

    @property
    def count_files(self) -> int:
        return len(self.files)
