"""Public package interface for the quadtree leaf mosaic renderer."""

from .__version__ import __version__
from .frame_scheduler import BuilderState
from .frame_scheduler import FrameResourceScheduler
from .frame_scheduler import QuadtreeBuilder
from .frame_scheduler import RunReport
from .frame_sequence import FrameJob
from .image_codec import FrameDecodeError
from .image_codec import FrameEncodeError
from .image_codec import FrameProcessingError
from .pixel_surface import PixelSurface
from .pixel_surface import Rect
from .pixel_surface import RgbColor
from .quadtree_engine import QuadtreeEngine
from .quadtree_generator import get_version
from .quadtree_generator import main
from .quadtree_settings import ConfigurationError
from .quadtree_settings import DecompositionParameters
from .quadtree_settings import RunSettings
from .sprite_cache import SpriteCache
from .subdivision_policy import ColorPolicy
from .subdivision_policy import MonochromePolicy
from .subdivision_policy import SubdivisionPolicy

__all__ = [
    "__version__",
    "BuilderState",
    "ColorPolicy",
    "ConfigurationError",
    "DecompositionParameters",
    "FrameDecodeError",
    "FrameEncodeError",
    "FrameJob",
    "FrameProcessingError",
    "FrameResourceScheduler",
    "MonochromePolicy",
    "PixelSurface",
    "QuadtreeBuilder",
    "QuadtreeEngine",
    "Rect",
    "RgbColor",
    "RunReport",
    "RunSettings",
    "SpriteCache",
    "SubdivisionPolicy",
    "get_version",
    "main",
]
