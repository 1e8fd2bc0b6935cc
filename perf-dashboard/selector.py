"""
Toggle selectors: named, observable sets of labels with one-hot or
multi-select behaviour.
"""

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

logger = logging.getLogger(__name__)


class Observable:
    """Synchronous subscribe/notify support."""

    def __init__(self):
        self._subscribers: List[Callable] = []

    def subscribe(self, callback: Callable) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self) -> None:
        # Copy, as callbacks may (un)subscribe while being notified
        for callback in list(self._subscribers):
            callback(self)


class SelectorMode(Enum):
    ONE_HOT = "one-hot"
    MULTI = "multi"


class ToggleSelector(Observable):
    """
    A set of toggleable labels.

    In ONE_HOT mode at most one label is selected at any time. In MULTI mode
    any subset of the labels can be selected. Every mutating call notifies
    all subscribers before returning, even if nothing changed.
    """

    def __init__(self, name: str, mode: SelectorMode, initial_selection: Iterable[str] = ()):
        super().__init__()
        self.name = name
        self.mode = mode
        self._initial = frozenset(initial_selection)
        if self.is_one_hot and len(self._initial) > 1:
            raise ValueError(f"One-hot selector '{name}' given {len(self._initial)} initial labels")
        self._labels: List[str] = []
        self._tooltips: Dict[str, str] = {}
        self._selected = set()

    @property
    def is_one_hot(self) -> bool:
        return self.mode is SelectorMode.ONE_HOT

    def labels(self) -> List[str]:
        """Labels in display order."""
        return list(self._labels)

    def tooltip(self, label: str) -> str:
        return self._tooltips.get(label, "")

    def selected(self) -> FrozenSet[str]:
        return frozenset(self._selected)

    def selected_in_order(self) -> List[str]:
        """Selected labels in display order."""
        return [label for label in self._labels if label in self._selected]

    def add_label(self, label: str, maintain_sort_order: bool, tooltip: str = "") -> None:
        """
        Add a label unless already present.

        Whether it starts selected is decided by the initial selection given
        at construction. With maintain_sort_order the label goes before the
        first existing label that sorts after it, otherwise at the end.
        """
        if label in self._tooltips:
            return

        self._tooltips[label] = tooltip
        position = len(self._labels)
        if maintain_sort_order:
            for i, existing in enumerate(self._labels):
                if existing > label:
                    position = i
                    break
        self._labels.insert(position, label)

        if label in self._initial:
            if self.is_one_hot:
                self._selected.clear()
            self._selected.add(label)

        self._notify()

    def remove_all_labels(self) -> None:
        self._labels.clear()
        self._tooltips.clear()
        self._selected.clear()
        self._notify()

    def select(self, labels: Iterable[str]) -> None:
        labels = list(dict.fromkeys(labels))
        if self.is_one_hot:
            if len(labels) != 1:
                logger.error(
                    f"select called on one-hot selector '{self.name}' with {len(labels)} labels"
                )
                return
            if labels[0] not in self._tooltips:
                logger.error(f"select called on one-hot selector '{self.name}' with unknown label '{labels[0]}'")
                return
            self._selected.clear()

        for label in labels:
            if label not in self._tooltips:
                logger.debug(f"Ignoring unknown label '{label}' in selector '{self.name}'")
                continue
            self._selected.add(label)

        self._notify()

    def deselect(self, labels: Iterable[str]) -> None:
        if self.is_one_hot:
            logger.error(f"deselect called on one-hot selector '{self.name}'")
            return
        for label in labels:
            self._selected.discard(label)
        self._notify()

    def toggle(self, label: str) -> None:
        """Behaviour of clicking the label's button."""
        if self.is_one_hot or label not in self._selected:
            self.select([label])
        else:
            self.deselect([label])

    def select_all(self) -> None:
        if self.is_one_hot:
            logger.error(f"select_all called on one-hot selector '{self.name}'")
            return
        self._selected = set(self._labels)
        self._notify()

    def select_none(self) -> None:
        if self.is_one_hot:
            logger.error(f"select_none called on one-hot selector '{self.name}'")
            return
        self._selected.clear()
        self._notify()

    def single(self) -> Optional[str]:
        """The selected label of a one-hot selector, if any."""
        for label in self._selected:
            return label
        return None

    def __repr__(self):
        return f"ToggleSelector({self.name!r}, {self.mode.value}, selected={sorted(self._selected)})"
