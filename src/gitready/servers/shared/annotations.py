from typing import Annotated

from pydantic import Field

OWNER = Annotated[str, Field(description="The owner of the repository.")]
REPO = Annotated[str, Field(description="The name of the repository.")]

ROLE = Annotated[
    str,
    Field(description="The role the candidate is applying for, for example `Frontend`, `Backend`, `Fullstack`, `DevOps` or `Data Science`."),
]

REF = Annotated[str | None, Field(description="The branch, tag or commit to read. If not provided, the default branch is used.")]

MAX_FILES = Annotated[int, Field(description="The maximum number of files to return.")]
MAX_FILE_SIZE = Annotated[
    int, Field(description="The maximum size of a file, in bytes. Larger files are skipped and content is truncated to it.")
]
TRUNCATE_CHARACTERS = Annotated[int, Field(description="The number of characters to truncate the content of the files to.")]
