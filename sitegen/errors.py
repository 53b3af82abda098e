"""Exception hierarchy.

Errors are caught at the nearest boundary (worker, deploy trigger, API
router) and turned into a status string plus a log event.
"""


class SitegenError(Exception):
    """Base class for all platform errors."""


class NotFoundError(SitegenError):
    """Requested job, project or deployment does not exist."""


# Submission


class JobValidationError(SitegenError):
    """Project specification rejected before anything was enqueued."""

    def __init__(self, message: str, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class QueueUnavailableError(SitegenError):
    """The job queue could not accept a new entry."""


class DuplicateJobError(SitegenError):
    """An active job with the same idempotency key already exists."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(f"Active job exists for key {idempotency_key[:12]}")
        self.idempotency_key = idempotency_key


class InvalidTransitionError(SitegenError):
    """A job status change did not match the expected current status."""

    def __init__(self, job_id: str, expected: tuple[str, ...], target: str) -> None:
        self.job_id = job_id
        self.expected = expected
        self.target = target
        super().__init__(
            f"Job {job_id}: cannot move to '{target}' (expected one of {', '.join(expected)})"
        )


# Generation


class GenerationError(SitegenError):
    """Template materialization failed."""


class UnknownModuleError(GenerationError):
    """A requested module is not part of the module library."""


class BuildError(GenerationError):
    """Install/build subprocess exited non-zero, failed to spawn or timed out."""

    def __init__(self, message: str, exit_code: int | None = None, output: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class SlugTakenError(GenerationError):
    """Another project already owns this slug."""


# Deployment


class DeploymentError(SitegenError):
    """A deployment step failed."""

    def __init__(self, message: str, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step


class DeployConfigError(DeploymentError):
    """Provider credentials are missing."""


class ProviderError(DeploymentError):
    """A third-party provider API returned an error."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
