from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Callable, Optional, Sequence

Action = Callable[[], None]


class LayerControlsWidget(tk.Frame):
    """Layer picker, layer/overlay add-remove buttons, edit toggle, Save and status line."""

    def __init__(
        self,
        parent: tk.Widget,
        *,
        on_select_layer: Callable[[int], None],
        on_add_layer: Action,
        on_remove_layer: Action,
        on_add_overlay: Action,
        on_remove_overlay: Action,
        on_toggle_edit: Callable[[bool], None],
        on_save: Action,
        edit_mode: bool = True,
    ) -> None:
        super().__init__(parent, bd=0, highlightthickness=0, bg=parent.cget("background"))
        self._on_select_layer = on_select_layer
        self._on_toggle_edit = on_toggle_edit
        self._labels: list[str] = []

        left = tk.Frame(self, bg=self.cget("background"))
        right = tk.Frame(self, bg=self.cget("background"))
        left.pack(side="left", fill="x", expand=True)
        right.pack(side="right")

        tk.Label(left, text="Layer", padx=4).pack(side="left")
        self._layer_var = tk.StringVar()
        self._layer_select = ttk.Combobox(left, textvariable=self._layer_var, state="readonly", width=16)
        self._layer_select.pack(side="left", padx=(0, 4))
        self._layer_select.bind("<<ComboboxSelected>>", self._handle_layer_selected, add="+")
        tk.Button(left, text="+", width=2, command=on_add_layer).pack(side="left")
        tk.Button(left, text="-", width=2, command=on_remove_layer).pack(side="left", padx=(0, 12))

        tk.Label(left, text="Overlay", padx=4).pack(side="left")
        tk.Button(left, text="+", width=2, command=on_add_overlay).pack(side="left")
        tk.Button(left, text="-", width=2, command=on_remove_overlay).pack(side="left")

        self._edit_var = tk.BooleanVar(value=edit_mode)
        tk.Checkbutton(right, text="Edit mode", variable=self._edit_var, command=self._handle_edit_toggle).pack(
            side="left", padx=(0, 8)
        )
        tk.Button(right, text="Save", command=on_save).pack(side="left")

        self._status_var = tk.StringVar(value="")
        status = tk.Label(self, textvariable=self._status_var, anchor="w", fg="#555555")
        status.pack(side="bottom", fill="x", before=left)

    def set_layers(self, labels: Sequence[str], current_index: Optional[int]) -> None:
        self._labels = list(labels)
        self._layer_select.configure(values=self._labels)
        if current_index is not None and 0 <= current_index < len(self._labels):
            self._layer_select.current(current_index)
        elif self._labels:
            self._layer_select.current(0)
        else:
            self._layer_var.set("")

    def set_status(self, text: str) -> None:
        self._status_var.set(text)

    def _handle_layer_selected(self, _event: object | None = None) -> None:
        index = self._layer_select.current()
        if index < 0:
            return
        self._on_select_layer(index)

    def _handle_edit_toggle(self) -> None:
        self._on_toggle_edit(bool(self._edit_var.get()))
