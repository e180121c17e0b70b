from .command_builder import FFmpegTool, GraphicsMagickTool, ImageTool, get_image_tool
from .executor import ProcessExecutor
from .quality_search import QualitySearch
from .storage import StorageService

__all__ = [
    "FFmpegTool",
    "GraphicsMagickTool",
    "ImageTool",
    "get_image_tool",
    "ProcessExecutor",
    "QualitySearch",
    "StorageService",
]
