from .layer_controls import LayerControlsWidget
from .overlay_form import OverlayFormWidget

__all__ = ["LayerControlsWidget", "OverlayFormWidget"]
