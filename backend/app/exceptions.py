"""Domain errors raised by the analysis and fix services.

Routes translate these into HTTP responses; background jobs record them on
the run record instead of raising them to a caller.
"""

from typing import Any


class RepoFixError(Exception):
    """Base class for all service errors."""


class ConflictError(RepoFixError):
    """The request conflicts with the current state of a resource."""


class NotFoundError(RepoFixError):
    """A referenced run does not exist or is not visible to the caller."""


class PreconditionFailedError(RepoFixError):
    """A referenced run is not in a state that allows the operation."""


class UpstreamError(RepoFixError):
    """A source host or generative model call failed."""


class ActiveAnalysisExists(ConflictError):
    """An analysis is already pending or running for the repository."""

    def __init__(self, run: Any):
        self.run = run
        super().__init__(f"An analysis is already {run.status} for repository {run.repo_id}")


class AnalysisNotFound(NotFoundError):
    def __init__(self, analysis_id: Any):
        self.analysis_id = analysis_id
        super().__init__(f"Analysis {analysis_id} not found")


class FixNotFound(NotFoundError):
    def __init__(self, fix_id: Any):
        self.fix_id = fix_id
        super().__init__(f"Fix {fix_id} not found")


class AnalysisNotCompleted(PreconditionFailedError):
    def __init__(self, analysis_id: Any, status: str):
        self.analysis_id = analysis_id
        self.status = status
        super().__init__(
            f"Analysis is in '{status}' state. Only completed analyses can be fixed."
        )


class NoIssuesToFix(PreconditionFailedError):
    def __init__(self, analysis_id: Any):
        self.analysis_id = analysis_id
        super().__init__("No issues found to fix")


class GitHubAPIError(UpstreamError):
    """Non-success response from the GitHub REST API."""

    def __init__(self, status_code: int, message: str, path: str = ""):
        self.status_code = status_code
        self.path = path
        super().__init__(f"GitHub API error {status_code} for {path or 'request'}: {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404
