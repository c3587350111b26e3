from .canvas_link import CanvasLink

__all__ = ["CanvasLink"]
