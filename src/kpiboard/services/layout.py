"""Dashboard layout: which widgets are shown and where."""

from __future__ import annotations

from typing import Any

import structlog

from kpiboard.adapters.storage import StateKeys, load_value, save_value
from kpiboard.core.exceptions import InvalidInputError
from kpiboard.core.interfaces import KeyValueStore
from kpiboard.models import DashboardLayout, default_layout

logger = structlog.get_logger()


class LayoutService:
    """Holds the persisted dashboard layout."""

    def __init__(self, store: KeyValueStore):
        """Load the layout from ``store``, falling back to the default."""
        self.store = store
        self._layout: DashboardLayout = load_value(
            store, StateKeys.LAYOUT, DashboardLayout, default_layout()
        )

    def get_current_layout(self) -> DashboardLayout:
        """The current layout."""
        return self._layout.model_copy(deep=True)

    def update_layout(self, layout: DashboardLayout | dict[str, Any]) -> DashboardLayout:
        """Replace the layout.

        Raises:
            InvalidInputError: If the layout does not validate or widget ids repeat.
        """
        if not isinstance(layout, DashboardLayout):
            try:
                layout = DashboardLayout.model_validate(layout)
            except ValueError as e:
                raise InvalidInputError(f"layout: {e}", field="layout") from e
        ids = [w.id for w in layout.widgets]
        if len(ids) != len(set(ids)):
            raise InvalidInputError("layout.widgets: widget ids must be unique", field="layout")
        self._layout = layout
        save_value(self.store, StateKeys.LAYOUT, layout)
        logger.info("layout_updated", name=layout.name, widgets=len(layout.widgets))
        return self.get_current_layout()

    def reset_to_default(self) -> DashboardLayout:
        """Restore the default seven-widget layout."""
        return self.update_layout(default_layout())

    def toggle_widget_visibility(self, widget_id: str) -> bool:
        """Flip a widget's visibility. False if no widget has that id."""
        layout = self.get_current_layout()
        widget = next((w for w in layout.widgets if w.id == widget_id), None)
        if widget is None:
            return False
        widget.visible = not widget.visible
        self.update_layout(layout)
        return True
