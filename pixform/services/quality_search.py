import uuid
from pathlib import Path

import structlog

from pixform.core.config import settings
from pixform.core.exceptions import CompressionUnreachable
from pixform.schemas.parameters import TransformParameters

from .command_builder import ImageTool
from .executor import ProcessExecutor

logger = structlog.get_logger()


class QualitySearch:
    """
    Binary search for an encoder quality whose output lands in a size window.

    Quality values are walked as positions 0..span, ordered from the smallest
    output (worst quality) to the largest (best quality), so the same loop works
    whether the tool's numeric scale grows or shrinks the file.
    Probes run one at a time.
    """

    def __init__(
        self,
        tool: ImageTool,
        executor: ProcessExecutor,
        max_attempts: int | None = None,
    ) -> None:
        self.tool = tool
        self.executor = executor
        self.max_attempts = max_attempts or settings.max_compression_attempts or tool.max_search_attempts

    @property
    def span(self) -> int:
        return abs(self.tool.best_quality - self.tool.worst_quality)

    def quality_at(self, position: int) -> int:
        step = 1 if self.tool.best_quality > self.tool.worst_quality else -1
        return self.tool.worst_quality + step * position

    def search(
        self,
        params: TransformParameters,
        input_file: Path,
        min_bytes: int,
        max_bytes: int,
        work_dir: Path,
    ) -> Path:
        """Return a file in [min_bytes, max_bytes], or the best effort under max_bytes."""
        if min_bytes > max_bytes:
            raise ValueError(f"min_bytes ({min_bytes}) is greater than max_bytes ({max_bytes})")

        candidate: Path | None = None
        candidate_size = 0

        try:
            best_file, best_size = self._probe(params, input_file, self.tool.best_quality, work_dir)
            self._discard(best_file)
            if best_size < min_bytes:
                raise CompressionUnreachable("Image is too simple.", best_size, None, min_bytes, max_bytes)

            worst_file, worst_size = self._probe(params, input_file, self.tool.worst_quality, work_dir)
            self._discard(worst_file)
            if worst_size > max_bytes:
                raise CompressionUnreachable("Image is too complex.", best_size, worst_size, min_bytes, max_bytes)

            low, high = 0, self.span
            for attempt in range(1, self.max_attempts + 1):
                position = (low + high) // 2
                quality = self.quality_at(position)
                probe, size = self._probe(params, input_file, quality, work_dir)
                logger.info(
                    "quality_probe",
                    attempt=attempt,
                    quality=quality,
                    size=size,
                    min_bytes=min_bytes,
                    max_bytes=max_bytes,
                )

                if min_bytes <= size <= max_bytes:
                    logger.info("quality_found", quality=quality, size=size, attempts=attempt)
                    self._discard(candidate)
                    candidate = None
                    return probe

                if size < min_bytes:
                    low = position + 1
                    self._discard(candidate)
                    candidate, candidate_size = probe, size
                else:
                    high = position - 1
                    self._discard(probe)

                if low > high:
                    break

            if candidate is not None and candidate_size <= max_bytes:
                logger.warning("quality_best_effort", size=candidate_size, min_bytes=min_bytes, max_bytes=max_bytes)
                result, candidate = candidate, None
                return result

            raise CompressionUnreachable(
                "Could not meet target size.", best_size, worst_size, min_bytes, max_bytes
            )
        finally:
            self._discard(candidate)

    def _probe(
        self, params: TransformParameters, input_file: Path, quality: int, work_dir: Path
    ) -> tuple[Path, int]:
        output = work_dir / f"probe-{uuid.uuid4().hex}.{params.output_format}"
        command = self.tool.build_command(params, str(input_file), str(output), quality=quality)
        try:
            self.executor.run(command)
            return output, output.stat().st_size
        except Exception:
            self._discard(output)
            raise

    @staticmethod
    def _discard(path: Path | None) -> None:
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("temp_file_cleanup_failed", path=str(path), error=str(e))
