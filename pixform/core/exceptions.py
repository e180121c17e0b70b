"""Error kinds raised while processing an image job.

Every ``ProcessingError`` carries an ``error_code`` that is stored on the job
when it ends up FAILED.
"""


class ProcessingError(Exception):
    """Base class for job processing failures."""

    error_code = "PROCESSING_ERROR"


class JobNotFound(ProcessingError):
    error_code = "JOB_NOT_FOUND"

    def __init__(self, job_id) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class ParameterDecodeError(ProcessingError):
    error_code = "PARAMETER_DECODE_ERROR"


class StorageError(ProcessingError):
    error_code = "STORAGE_ERROR"


class ToolError(ProcessingError):
    """Raised when the external image tool cannot be run."""

    error_code = "TOOL_ERROR"


class ToolTimeout(ToolError):
    error_code = "TOOL_TIMEOUT"

    def __init__(self, command: list[str], timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"{command[0]} timed out after {timeout} seconds")


class ToolExitError(ToolError):
    error_code = "TOOL_EXIT_ERROR"

    def __init__(self, command: list[str], returncode: int, output: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"{command[0]} failed with exit code {returncode}")


class CompressionUnreachable(ProcessingError):
    """The requested size window cannot be met by any quality setting.

    ``worst_size`` is ``None`` when the search stopped before probing the
    worst-quality extreme.
    """

    error_code = "COMPRESSION_UNREACHABLE"

    def __init__(
        self,
        message: str,
        best_size: int,
        worst_size: int | None,
        min_bytes: int,
        max_bytes: int,
    ) -> None:
        self.best_size = best_size
        self.worst_size = worst_size
        self.min_bytes = min_bytes
        self.max_bytes = max_bytes
        super().__init__(self._diagnostic(message))

    def _diagnostic(self, message: str) -> str:
        if self.best_size < self.min_bytes:
            return (
                "Image is too simple to meet the minimum size. "
                f"The highest quality version is only {self.best_size / 1024:.2f} KiB."
            )
        if self.worst_size is not None and self.worst_size > self.max_bytes:
            return (
                "Image is too complex to meet the maximum size. "
                f"Even the lowest quality version is {self.worst_size / 1024:.2f} KiB."
            )
        return (
            f"{message} Target: [{self.min_bytes}, {self.max_bytes}] bytes, "
            f"best quality: {self.best_size} bytes, worst quality: {self.worst_size} bytes."
        )


class InvalidTransition(Exception):
    """Raised when a job status change would break the state machine."""

    def __init__(self, current, target) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move job from {current} to {target}")
