"""Example service exposed by the gateway.

A small in-memory widget catalogue.  It is what ``python -m
gateway.server`` serves when no other services are configured, and it
shows the declaration conventions: header objects, aliases, exclusions,
fixed-width scalars and application errors mapped to HTTP responses.
"""

from __future__ import annotations

import datetime
import enum
import logging
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Annotated

from bridge.descriptors import WebParam, web_method
from bridge.scalars import Long

from gateway.policy import ErrorResponse
from gateway.routing import ServiceClass

log = logging.getLogger(__name__)


class Colour(enum.Enum):
    RED = "red"
    GREEN = "green"
    BLUE = "blue"


@dataclass
class Widget:
    id: int
    name: str
    price: Decimal | None = None
    colour: Colour | None = None
    added: datetime.date | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class Context:
    """Caller context, sent as ``X-<Vendor>-Context`` headers."""

    user: str | None = None
    branch: str | None = None


class WidgetNotFoundError(LookupError):
    def __init__(self, widget_id: int) -> None:
        self.widget_id = widget_id
        super().__init__(f"No widget {widget_id}")


class WidgetStore:
    """Thread-safe widget storage shared by every service instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._widgets: dict[int, Widget] = {}

    def get(self, widget_id: int) -> Widget:
        with self._lock:
            widget = self._widgets.get(widget_id)
        if widget is None:
            raise WidgetNotFoundError(widget_id)
        return widget

    def put(self, widget: Widget) -> Widget:
        with self._lock:
            self._widgets[widget.id] = widget
        return widget

    def delete(self, widget_id: int) -> bool:
        with self._lock:
            return self._widgets.pop(widget_id, None) is not None

    def all(self) -> list[Widget]:
        with self._lock:
            return sorted(self._widgets.values(), key=lambda w: w.id)


# ── Service ──────────────────────────────────────────────────────────


class WidgetService:
    def __init__(self, store: WidgetStore | None = None) -> None:
        self.store = store or WidgetStore()

    def get_widget(
        self,
        id: int,
        context: Annotated[Context | None, WebParam("context", header=True)] = None,
    ) -> Widget:
        if context is not None:
            log.info("get_widget %d for %s", id, context.user)
        return self.store.get(id)

    def get_widgets(self, colour: Colour | None) -> list[Widget]:
        return [w for w in self.store.all() if colour is None or w.colour is colour]

    def put_widget(
        self,
        widget: Widget,
        context: Annotated[Context | None, WebParam("context", header=True)] = None,
    ) -> Widget:
        if context is not None and context.branch:
            widget.tags.append(context.branch)
        return self.store.put(widget)

    def delete_widget(self, id: Long) -> bool:
        return self.store.delete(id)

    def quote(self, id: int, quantity: int, on: datetime.date | None) -> dict[str, object]:
        """Price *quantity* of a widget, as of a (locale-formatted) date."""
        widget = self.store.get(id)
        total = (widget.price or Decimal(0)) * quantity
        return {"id": id, "quantity": quantity, "total": total, "on": on}

    @web_method(operation_name="save")
    def save_widget(self, widget: Widget) -> Widget:
        return self.store.put(widget)

    @web_method(operation_name="save")
    def save_draft(self, widget: Widget) -> Widget:
        widget.tags.append("draft")
        return self.store.put(widget)

    @web_method(operation_name="count")
    def count_widgets(self) -> int:
        return len(self.store.all())

    @web_method(exclude=True)
    def reset(self) -> None:
        for widget in self.store.all():
            self.store.delete(widget.id)

    def explode(self) -> None:
        raise RuntimeError("widget press jammed")


def widget_errors(exc: BaseException) -> ErrorResponse | None:
    """Exception mapper for :class:`WidgetService`."""
    if isinstance(exc, WidgetNotFoundError):
        return ErrorResponse(404, str(exc), "WIDGET_NOT_FOUND")
    return None


def default_services(store: WidgetStore | None = None) -> dict[str, ServiceClass]:
    store = store or WidgetStore()
    return {"/widgets": ServiceClass.for_class(WidgetService, lambda: WidgetService(store))}
