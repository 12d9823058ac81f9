"""Terminal presentation for WaveDictate."""

from .indicator_surface import RichIndicatorSurface

__all__ = ["RichIndicatorSurface"]
