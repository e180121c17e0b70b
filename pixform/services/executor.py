import subprocess

import structlog

from pixform.core.config import settings
from pixform.core.exceptions import ToolError, ToolExitError, ToolTimeout

logger = structlog.get_logger()


class ProcessExecutor:
    """Runs the external image tool with a wall-clock timeout."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout if timeout is not None else settings.tool_timeout_seconds

    def run(self, command: list[str]) -> str:
        """
        Run ``command`` and return its combined stdout/stderr.

        Output is drained while waiting, so a chatty tool never blocks on a full pipe.
        Bytes that are not valid UTF-8 are replaced rather than failing the run.
        On timeout the child is killed before ToolTimeout is raised.
        """
        tool = command[0]
        logger.info("tool_started", tool=tool, command=" ".join(command))

        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            logger.error("tool_timeout", tool=tool, timeout=self.timeout)
            raise ToolTimeout(command, self.timeout) from e
        except OSError as e:
            logger.error("tool_start_failed", tool=tool, error=str(e))
            raise ToolError(f"Could not start {tool}: {e}") from e

        # Lines are logged once the tool exits; a run killed by the timeout logs none.
        output = result.stdout or ""
        for line in output.splitlines():
            logger.info("tool_output", tool=tool, line=line)

        if result.returncode != 0:
            logger.error("tool_failed", tool=tool, returncode=result.returncode, output=output[:500])
            raise ToolExitError(command, result.returncode, output)

        logger.info("tool_completed", tool=tool)
        return output
