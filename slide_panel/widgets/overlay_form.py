from __future__ import annotations

import tkinter as tk
from typing import Any, Callable, Dict, Mapping, Optional

from slide_canvas.slide_model import DEFAULT_OVERLAY_TYPE, OVERLAY_TYPES

TEXT_FIELDS = (("class", "Class"), ("target", "Target"), ("label", "Label"))

ChangeCallback = Callable[[str, Any], None]


class OverlayFormWidget(tk.Frame):
    """Property form for the selected overlay; every keystroke is reported."""

    def __init__(self, parent: tk.Widget) -> None:
        super().__init__(parent, bd=0, highlightthickness=0, bg=parent.cget("background"))
        self._on_change: Optional[ChangeCallback] = None
        self._populating = False
        self._vars: Dict[str, tk.StringVar] = {}
        self._entries: Dict[str, tk.Widget] = {}

        self.grid_columnconfigure(1, weight=1)
        self._empty_label = tk.Label(self, text="Select an overlay on the canvas", anchor="w", fg="#7a7a7a")

        for row, (field, caption) in enumerate(TEXT_FIELDS):
            var = tk.StringVar()
            label = tk.Label(self, text=f"{caption}:", anchor="e", padx=4, pady=2)
            entry = tk.Entry(self, textvariable=var, width=32)
            label.grid(row=row, column=0, sticky="e")
            entry.grid(row=row, column=1, sticky="we", padx=(2, 8), pady=2)
            var.trace_add("write", lambda *_args, f=field: self._emit_change(f))
            self._vars[field] = var
            self._entries[field] = entry

        type_var = tk.StringVar(value=DEFAULT_OVERLAY_TYPE)
        type_label = tk.Label(self, text="Type:", anchor="e", padx=4, pady=2)
        type_menu = tk.OptionMenu(self, type_var, *OVERLAY_TYPES)
        type_label.grid(row=len(TEXT_FIELDS), column=0, sticky="e")
        type_menu.grid(row=len(TEXT_FIELDS), column=1, sticky="w", padx=(2, 8), pady=2)
        type_var.trace_add("write", lambda *_args: self._emit_change("type"))
        self._vars["type"] = type_var
        self._entries["type"] = type_menu
        self._empty_label.grid(row=len(TEXT_FIELDS) + 1, column=0, columnspan=2, sticky="w", padx=4)
        self.clear()

    def set_change_callback(self, callback: Optional[ChangeCallback]) -> None:
        """Register a callback invoked with (field, value) when the user edits a field."""

        self._on_change = callback

    def show(self, overlay: Mapping[str, Any]) -> None:
        """Rebuild the form for ``overlay`` without reporting the values as edits."""
        self._populating = True
        try:
            for field, _caption in TEXT_FIELDS:
                value = overlay.get(field)
                self._vars[field].set("" if value is None else str(value))
            overlay_type = overlay.get("type")
            self._vars["type"].set(overlay_type if overlay_type in OVERLAY_TYPES else DEFAULT_OVERLAY_TYPE)
        finally:
            self._populating = False
        self._set_enabled(True)
        self._empty_label.grid_remove()

    def clear(self) -> None:
        self._populating = True
        try:
            for field, var in self._vars.items():
                var.set(DEFAULT_OVERLAY_TYPE if field == "type" else "")
        finally:
            self._populating = False
        self._set_enabled(False)
        self._empty_label.grid()

    def value(self, field: str) -> str:
        return self._vars[field].get()

    def _set_enabled(self, enabled: bool) -> None:
        state = "normal" if enabled else "disabled"
        for widget in self._entries.values():
            widget.configure(state=state)

    def _emit_change(self, field: str) -> None:
        if self._populating or self._on_change is None:
            return
        self._on_change(field, self._vars[field].get())
