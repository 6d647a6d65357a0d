"""
Editable overlay over the preview surface.

The overlay decorates text unit nodes with interaction affordances, runs
edit sessions and writes committed edits back into the nodes. Everything it
adds is recorded so ``detach`` leaves the nodes as it found them (apart
from committed edits).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

from lxml import etree

from .config import EditorConfig
from .markup import replace_text
from .models import CommitOutcome, CommitResult, EditSession, TextStyle, TextUnit
from .styles.inline_style import InlineStyle, parse_style

logger = logging.getLogger(__name__)

EDITABLE_CLASS = "editable-element"
EDITABLE_ID_ATTR = "data-editable-id"
TEXT_ELEMENT_ATTR = "data-text-element"

AFFORDANCE_STYLE = {
    "cursor": "pointer",
    "transition": "all 0.2s ease",
}

HIGHLIGHT_PROPERTIES = ("background-color", "outline", "outline-offset")

CommitListener = Callable[[TextUnit], None]


@dataclass
class _NodeRecord:
    """Prior state of everything the overlay touched on one node."""

    style_attr: Optional[str]
    class_attr: Optional[str]
    attributes: Dict[str, Optional[str]]
    properties: Dict[str, Optional[str]] = field(default_factory=dict)
    added_class: bool = False


@dataclass(eq=False)
class OverlayHandle:
    """Live attachment of the overlay to a set of units."""

    units: Dict[str, TextUnit]
    records: Dict[str, _NodeRecord] = field(default_factory=dict)
    hovered: Set[str] = field(default_factory=set)
    session: Optional[EditSession] = None
    attached: bool = True


def _class_tokens(value: Optional[str]) -> List[str]:
    return (value or "").split()


def _restore_attribute(node: etree._Element, name: str, value: Optional[str]) -> None:
    if value is None:
        node.attrib.pop(name, None)
    else:
        node.set(name, value)


class OverlaySession:
    """
    Edit-in-place controller for the text units of one surface.

    Args:
        config: Editor settings (maximum text length, highlight values)
    """

    def __init__(self, config: Optional[EditorConfig] = None):
        self.config = config or EditorConfig()
        self.handle: Optional[OverlayHandle] = None
        self._listeners: List[CommitListener] = []

    # ------------------------------------------------------------------
    # Attachment
    # ------------------------------------------------------------------

    def attach(self, units: Iterable[TextUnit]) -> OverlayHandle:
        """
        Decorate unit nodes with editing affordances.

        Attaching while another handle is live detaches that handle first.
        """
        if self.handle is not None and self.handle.attached:
            logger.debug("Replacing live overlay handle")
            self.detach(self.handle)

        handle = OverlayHandle(units={unit.id: unit for unit in units})
        for unit in handle.units.values():
            handle.records[unit.id] = self._decorate(unit)
        self.handle = handle
        logger.debug(f"Overlay attached to {len(handle.units)} units")
        return handle

    def detach(self, handle: Optional[OverlayHandle] = None) -> None:
        """Remove every affordance; open sessions are cancelled."""
        handle = handle or self.handle
        if handle is None or not handle.attached:
            return

        if handle.session is not None:
            self.cancel(handle.session)
        for unit_id in list(handle.hovered):
            self.unhover(unit_id, handle)
        for unit_id, record in handle.records.items():
            unit = handle.units.get(unit_id)
            if unit is not None:
                self._restore(unit.node, record)

        handle.attached = False
        handle.records.clear()
        if self.handle is handle:
            self.handle = None
        logger.debug("Overlay detached")

    @property
    def is_attached(self) -> bool:
        return self.handle is not None and self.handle.attached

    def _decorate(self, unit: TextUnit) -> _NodeRecord:
        node = unit.node
        style = InlineStyle(node)
        current = style.as_dict()
        record = _NodeRecord(
            style_attr=node.get("style"),
            class_attr=node.get("class"),
            attributes={
                EDITABLE_ID_ATTR: node.get(EDITABLE_ID_ATTR),
                TEXT_ELEMENT_ATTR: node.get(TEXT_ELEMENT_ATTR),
            },
            properties={prop: current.get(prop) for prop in AFFORDANCE_STYLE},
        )

        style.update(dict(AFFORDANCE_STYLE))
        tokens = _class_tokens(record.class_attr)
        if EDITABLE_CLASS not in tokens:
            node.set("class", " ".join(tokens + [EDITABLE_CLASS]))
            record.added_class = True
        node.set(EDITABLE_ID_ATTR, unit.id)
        node.set(TEXT_ELEMENT_ATTR, "true")
        return record

    def _restore(self, node: etree._Element, record: _NodeRecord) -> None:
        style = InlineStyle(node)
        style.update(dict(record.properties))
        if parse_style(node.get("style")) == parse_style(record.style_attr):
            _restore_attribute(node, "style", record.style_attr)

        if record.added_class:
            tokens = [t for t in _class_tokens(node.get("class")) if t != EDITABLE_CLASS]
            if tokens == _class_tokens(record.class_attr):
                _restore_attribute(node, "class", record.class_attr)
            else:
                node.set("class", " ".join(tokens))

        for name, value in record.attributes.items():
            _restore_attribute(node, name, value)

    # ------------------------------------------------------------------
    # Hover highlight
    # ------------------------------------------------------------------

    def hover(self, unit_id: str) -> None:
        """Apply the hover highlight to a unit."""
        handle = self._require_handle()
        unit = handle.units.get(unit_id)
        if unit is None or unit_id in handle.hovered:
            return
        style = InlineStyle(unit.node)
        current = style.as_dict()
        record = handle.records[unit_id]
        for prop in HIGHLIGHT_PROPERTIES:
            record.properties.setdefault(prop, current.get(prop))
        style.update({
            "background-color": self.config.highlight_background,
            "outline": self.config.highlight_outline,
            "outline-offset": self.config.highlight_outline_offset,
        })
        handle.hovered.add(unit_id)

    def unhover(self, unit_id: str, handle: Optional[OverlayHandle] = None) -> None:
        """Remove the hover highlight from a unit."""
        handle = handle or self._require_handle()
        if unit_id not in handle.hovered:
            return
        handle.hovered.discard(unit_id)
        unit = handle.units.get(unit_id)
        record = handle.records.get(unit_id)
        if unit is None or record is None:
            return
        InlineStyle(unit.node).update({prop: record.properties.get(prop) for prop in HIGHLIGHT_PROPERTIES})

    # ------------------------------------------------------------------
    # Edit sessions
    # ------------------------------------------------------------------

    def activate(self, unit_id: str) -> EditSession:
        """
        Open an edit session for a unit.

        A session already open on this handle is cancelled first.

        Raises:
            RuntimeError: If the overlay is not attached
            KeyError: If the unit is not part of the attached set
        """
        handle = self._require_handle()
        unit = handle.units.get(unit_id)
        if unit is None:
            raise KeyError(f"Unknown text unit: {unit_id}")
        if handle.session is not None:
            logger.debug(f"Cancelling open session for {handle.session.target_unit_id}")
            self.cancel(handle.session)

        session = EditSession(target_unit_id=unit_id, draft_text=unit.text, draft_style=unit.style)
        handle.session = session
        return session

    def commit(self, session: EditSession) -> CommitResult:
        """
        Validate a session's draft and write it into the unit's node.

        Rejected drafts leave the node untouched and the session open.
        """
        handle = self.handle
        if not session.is_open or handle is None or handle.session is not session:
            return CommitResult(CommitOutcome.SESSION_CLOSED, "This edit session is no longer open")

        unit = handle.units.get(session.target_unit_id)
        if unit is None:
            return CommitResult(CommitOutcome.UNKNOWN_UNIT, "The edited text no longer exists")

        text = (session.draft_text or "").strip()
        if not text:
            logger.info(f"Commit rejected for {unit.id}: empty text")
            return CommitResult(CommitOutcome.EMPTY_TEXT_REJECTED, "Text cannot be empty", unit)

        limit = self.config.max_text_length
        if len(text) > limit:
            logger.info(f"Commit rejected for {unit.id}: {len(text)} characters (limit {limit})")
            return CommitResult(
                CommitOutcome.TEXT_TOO_LONG,
                f"Text cannot exceed {limit} characters",
                unit,
            )

        self._write(unit, text, session.draft_style.normalized())
        session.is_open = False
        handle.session = None
        self._notify(unit)
        return CommitResult(CommitOutcome.SUCCESS, "", unit)

    def cancel(self, session: EditSession) -> None:
        """Close a session without touching the node."""
        session.is_open = False
        if self.handle is not None and self.handle.session is session:
            self.handle.session = None

    def reset_unit(self, unit_id: str) -> CommitResult:
        """Restore a unit's extraction-time text and style."""
        handle = self._require_handle()
        unit = handle.units.get(unit_id)
        if unit is None:
            return CommitResult(CommitOutcome.UNKNOWN_UNIT, "The edited text no longer exists")
        if handle.session is not None and handle.session.target_unit_id == unit_id:
            self.cancel(handle.session)
        self._write(unit, unit.original_text, unit.original_style or unit.style)
        self._notify(unit)
        return CommitResult(CommitOutcome.SUCCESS, "", unit)

    def _write(self, unit: TextUnit, text: str, style: TextStyle) -> None:
        replace_text(unit.node, text)
        InlineStyle(unit.node).update(style.to_css())
        unit.text = text
        unit.style = style

    # ------------------------------------------------------------------
    # Lookup and listeners
    # ------------------------------------------------------------------

    def unit_at(self, x: float, y: float) -> Optional[TextUnit]:
        """
        Hit-test advisory bounds.

        The smallest unit containing the point wins, so nested text beats
        its container.
        """
        if self.handle is None:
            return None
        hits = [
            unit for unit in self.handle.units.values()
            if unit.bounds is not None and unit.bounds.contains(x, y)
        ]
        if not hits:
            return None
        return min(hits, key=lambda unit: unit.bounds.width * unit.bounds.height)

    def on_commit(self, listener: CommitListener) -> None:
        self._listeners.append(listener)

    def _notify(self, unit: TextUnit) -> None:
        for listener in self._listeners:
            listener(unit)

    def _require_handle(self) -> OverlayHandle:
        if self.handle is None or not self.handle.attached:
            raise RuntimeError("Overlay is not attached")
        return self.handle
