"""
Command construction for the external image tools.

Each backend turns a TransformParameters into an argument list in a fixed order:
tool and input, DPI, crop, resize, quality, output path. Nothing else in the
worker knows a tool's flag vocabulary.
"""

from pixform.core.config import settings
from pixform.schemas.parameters import TransformParameters


class ImageTool:
    """Base class for an external rasterizing tool."""

    name: str = ""
    quality_domain: tuple[int, int] = (0, 100)
    higher_value_grows_size: bool = True
    max_search_attempts: int = 8

    @property
    def best_quality(self) -> int:
        """Quality value producing the largest output."""
        low, high = self.quality_domain
        return high if self.higher_value_grows_size else low

    @property
    def worst_quality(self) -> int:
        """Quality value producing the smallest output."""
        low, high = self.quality_domain
        return low if self.higher_value_grows_size else high

    def from_percent(self, quality: int) -> int:
        """Map a 0-100 quality percentage onto this tool's native scale."""
        worst, best = self.worst_quality, self.best_quality
        return round(worst + (best - worst) * quality / 100)

    def resolve_quality(self, params: TransformParameters, quality: int | None) -> int | None:
        """
        Pick the quality flag value.

        Returns None when no explicit flag applies, i.e. when a size window is
        configured and the caller did not pass an override.
        """
        if quality is not None:
            return quality
        compression = params.compression
        if compression is not None and compression.quality is not None:
            return self.from_percent(compression.quality)
        return None

    def uses_default_quality(self, params: TransformParameters) -> bool:
        compression = params.compression
        return compression is None or (compression.quality is None and not compression.has_size_bounds)

    def build_command(
        self,
        params: TransformParameters,
        input_path: str,
        output_path: str,
        quality: int | None = None,
    ) -> list[str]:
        raise NotImplementedError


class GraphicsMagickTool(ImageTool):
    name = "graphicsmagick"
    quality_domain = (0, 100)
    higher_value_grows_size = True
    max_search_attempts = 8

    DEFAULT_QUALITY_ARGS = ["-quality", "100", "-sampling-factor", "1x1,1x1,1x1"]

    def build_command(self, params, input_path, output_path, quality=None):
        command = ["gm", "convert", input_path]

        if params.dpi is not None and params.dpi > 0:
            command += ["-density", f"{params.dpi}x{params.dpi}"]

        if params.crop is not None:
            crop = params.crop
            command += ["-crop", f"{crop.width}x{crop.height}+{crop.x}+{crop.y}"]

        if params.resize is not None and params.resize.is_effective:
            # '!' forces the exact geometry, lockAspectRatio is not consulted
            command += ["-resize", f"{params.resize.width}x{params.resize.height}!"]

        value = self.resolve_quality(params, quality)
        if value is not None:
            command += ["-quality", str(value)]
        elif self.uses_default_quality(params):
            command += self.DEFAULT_QUALITY_ARGS

        command.append(output_path)
        return command


class FFmpegTool(ImageTool):
    name = "ffmpeg"
    # -q:v for MJPEG: 2 is the best quality, 31 the worst
    quality_domain = (2, 31)
    higher_value_grows_size = False
    max_search_attempts = 10

    DEFAULT_QUALITY_ARGS = ["-q:v", "2"]

    def build_command(self, params, input_path, output_path, quality=None):
        command = ["ffmpeg", "-y", "-i", input_path]

        # FFmpeg has no density setting for still images, dpi is not emitted.

        filters = []
        if params.crop is not None:
            crop = params.crop
            filters.append(f"crop={crop.width}:{crop.height}:{crop.x}:{crop.y}")
        if params.resize is not None and params.resize.is_effective:
            filters.append(f"scale={params.resize.width}:{params.resize.height}")
        if filters:
            command += ["-vf", ",".join(filters)]

        value = self.resolve_quality(params, quality)
        if value is not None:
            command += ["-q:v", str(value)]
        elif self.uses_default_quality(params):
            command += self.DEFAULT_QUALITY_ARGS

        command += ["-frames:v", "1", output_path]
        return command


IMAGE_TOOLS: dict[str, type[ImageTool]] = {
    "graphicsmagick": GraphicsMagickTool,
    "gm": GraphicsMagickTool,
    "ffmpeg": FFmpegTool,
}


def get_image_tool(name: str | None = None) -> ImageTool:
    """Return the backend configured by IMAGE_TOOL, or the one named explicitly."""
    key = (name or settings.image_tool).strip().lower()
    try:
        return IMAGE_TOOLS[key]()
    except KeyError:
        raise ValueError(f"Unknown image tool: {key}. Allowed: {sorted(IMAGE_TOOLS)}") from None
