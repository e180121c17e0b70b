from .job import JobStatusResponse
from .parameters import (
    CompressionParams,
    CompressionStrategy,
    CropParams,
    ResizeParams,
    TransformParameters,
)

__all__ = [
    "JobStatusResponse",
    "CompressionParams",
    "CompressionStrategy",
    "CropParams",
    "ResizeParams",
    "TransformParameters",
]
