from sitegen.contracts.base import BaseMessage, BaseResult


class AssemblyMessage(BaseMessage):
    """
    Build one generated project.

    Stream: assembly:queue

    The job row already holds the validated spec; the message only
    references it, so redelivery never carries stale data.
    """

    job_id: str
    attempt: int = 1


class AssemblyResult(BaseResult):
    """
    Assembly outcome.
    Stream: assembly:results
    """

    job_id: str
    project_id: str | None = None
    output_path: str | None = None
    pages_generated: int = 0
    total_cost: float = 0.0
    will_retry: bool = False
