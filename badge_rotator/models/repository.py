from typing import List

from pydantic import BaseModel


class CommitAuthor(BaseModel):
    name: str
    email: str

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


class ChangeSet(BaseModel):
    """The commit applied to the workspace before it is pushed."""

    branch: str
    commit_sha: str
    message: str
    author: CommitAuthor
    files: List[str]


class PullRequestRequest(BaseModel):
    owner: str
    repo: str
    title: str
    body: str
    head: str
    base: str
    maintainer_can_modify: bool = True
