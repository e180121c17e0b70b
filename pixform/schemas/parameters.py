import enum
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from pixform.core.exceptions import ParameterDecodeError

KIB = 1024
MIB = 1024 * 1024


class CompressionStrategy(str, enum.Enum):
    FIXED_QUALITY = "FIXED_QUALITY"
    SIZE_WINDOW = "SIZE_WINDOW"
    TOOL_DEFAULT = "TOOL_DEFAULT"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ResizeParams(_CamelModel):
    width: int = 0
    height: int = 0
    unit: str | None = None
    lock_aspect_ratio: bool = False

    @property
    def is_effective(self) -> bool:
        return self.width > 0 and self.height > 0


class CropParams(_CamelModel):
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class CompressionParams(_CamelModel):
    quality: int | None = Field(None, ge=0, le=100)
    min_size: float | None = Field(None, ge=0)
    max_size: float | None = Field(None, ge=0)
    unit: str | None = None

    @model_validator(mode="after")
    def check_window(self) -> "CompressionParams":
        if self.min_size is not None and self.max_size is not None and self.min_size > self.max_size:
            raise ValueError("minSize must not be greater than maxSize")
        return self

    @property
    def multiplier(self) -> int:
        # Anything other than MiB counts as KiB.
        if self.unit and self.unit.lower() == "mib":
            return MIB
        return KIB

    @property
    def has_size_bounds(self) -> bool:
        return self.min_size is not None or self.max_size is not None

    def size_window(self) -> tuple[int, int] | None:
        """Return the inclusive ``(min_bytes, max_bytes)`` window, if both ends are set."""
        if self.min_size is None or self.max_size is None:
            return None
        return int(self.min_size * self.multiplier), int(self.max_size * self.multiplier)


class TransformParameters(_CamelModel):
    """Declarative transform request stored with each job."""

    output_format: str = "jpg"
    dpi: int | None = None
    resize: ResizeParams | None = None
    crop: CropParams | None = None
    compression: CompressionParams | None = None

    @field_validator("output_format", mode="before")
    @classmethod
    def normalize_format(cls, value: Any) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "jpg"
        return str(value).strip().lstrip(".").lower()

    def size_window(self) -> tuple[int, int] | None:
        if self.compression is None:
            return None
        return self.compression.size_window()

    def compression_strategy(self) -> CompressionStrategy:
        compression = self.compression
        if compression is not None and compression.quality is not None:
            return CompressionStrategy.FIXED_QUALITY
        if self.size_window() is not None:
            return CompressionStrategy.SIZE_WINDOW
        return CompressionStrategy.TOOL_DEFAULT

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def decode(cls, raw: Any) -> "TransformParameters":
        """Parse the parameters stored on a job (JSON text or an already-decoded dict)."""
        if isinstance(raw, cls):
            return raw
        try:
            if isinstance(raw, (str, bytes, bytearray)):
                raw = json.loads(raw)
            if raw is None:
                raw = {}
            return cls.model_validate(raw)
        except (ValueError, TypeError, ValidationError) as e:
            raise ParameterDecodeError(f"Invalid job parameters: {e}") from e
