"""Error taxonomy for the badge rotation pipeline.

Every error carries the pipeline ``stage`` it belongs to and the HTTP status
code the trigger answers with when the run stops on it.  Configuration
problems are the caller's fault (400); everything else is a pipeline failure
(500).
"""

from typing import Optional


class BadgeRotatorError(Exception):
    """Base class for every failure the pipeline reports."""

    stage = "pipeline"
    status_code = 500

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage


class ConfigurationError(BadgeRotatorError):
    """A required secret or identifier is missing."""

    stage = "configuration"
    status_code = 400


class FetchError(BadgeRotatorError):
    """The source badge page could not be fetched (transport or non-200)."""

    stage = "fetch"


class ExtractionError(BadgeRotatorError):
    """No hyperlink anchor was found in the source document."""

    stage = "extract"


class StoreError(BadgeRotatorError):
    """Object-store read, session, upload or download failure."""

    stage = "store"


class RenderError(BadgeRotatorError):
    """Render API transport failure, timeout or error status."""

    stage = "render"


class MalformedRenderResponseError(RenderError):
    """Render API answered 2xx but the body carried no usable image URL."""


class RepositoryError(BadgeRotatorError):
    stage = "repository"


class SequencingError(RepositoryError):
    """A repository operation was called out of order."""


class CloneError(RepositoryError):
    stage = "clone"


class BranchError(RepositoryError):
    stage = "branch"


class BranchExistsError(BranchError):
    """The month's branch already exists locally or on ``origin``."""


class UpdateError(RepositoryError):
    stage = "update"


class CommitError(RepositoryError):
    stage = "commit"


class PushError(RepositoryError):
    stage = "push"


class PullRequestError(BadgeRotatorError):
    stage = "pull_request"
