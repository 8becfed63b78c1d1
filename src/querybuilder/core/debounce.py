"""
Debounced commits of free-text values.

Typing updates a local draft immediately; the draft reaches the rule tree
only after the input has been quiet for the debounce interval. Timers are
reached through the TimerScheduler protocol so the pipeline runs on a Qt
event loop in the application and on a manual clock in tests.
"""

from typing import Any, Callable, Optional, Protocol

from ..infrastructure.logging_config import get_logger
from .models import RuleGroup
from .rule_tree import RuleTree, TreeChange


logger = get_logger(__name__)


DEFAULT_DEBOUNCE_MS = 600


class TimerScheduler(Protocol):
    """Schedules cancellable single-shot callbacks."""

    def start(self, interval_ms: int, callback: Callable[[], None]) -> Any:
        """Run callback once after interval_ms; return a handle for cancel()."""
        ...

    def cancel(self, handle: Any) -> None:
        """Cancel a pending callback. Cancelling a fired handle is a no-op."""
        ...


class DebouncedValueCommit:
    """
    Draft buffer of one rule's free-text value.

    The pending commit is discarded when the rule is removed, when its field
    or operator changes, or when the owning editor closes.
    """

    def __init__(
        self,
        tree: RuleTree,
        rule_id: str,
        scheduler: TimerScheduler,
        interval_ms: int = DEFAULT_DEBOUNCE_MS,
    ):
        """
        Initialize the debounced commit.

        Args:
            tree: Tree holding the rule.
            rule_id: Id of the rule whose value is edited.
            scheduler: Timer backend.
            interval_ms: Quiet interval before the draft is committed.
        """
        self._tree = tree
        self._rule_id = rule_id
        self._scheduler = scheduler
        self._interval_ms = interval_ms

        rule = tree.find(rule_id)
        self._target = (rule.field, rule.operator)
        self._draft: str = rule.value if isinstance(rule.value, str) else ''
        self._handle: Optional[Any] = None
        self._closed = False
        self._unsubscribe = tree.subscribe(self._on_tree_changed)

    @property
    def draft(self) -> str:
        return self._draft

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def push(self, text: str) -> None:
        """Record a keystroke and restart the quiet interval."""
        if self._closed or not self._tree.contains(self._rule_id):
            return
        rule = self._tree.find(self._rule_id)
        self._target = (rule.field, rule.operator)
        self._draft = text
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
        self._handle = self._scheduler.start(self._interval_ms, self._fire)

    def discard(self) -> None:
        """Drop the pending commit, if any."""
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._handle = None
            logger.debug(f"Discarded pending value commit for rule {self._rule_id}")

    def flush(self) -> None:
        """Commit the pending draft now."""
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._fire()

    def close(self) -> None:
        """Tear down: discard the pending commit and stop observing the tree."""
        self.discard()
        self._unsubscribe()
        self._closed = True

    def _fire(self) -> None:
        self._handle = None
        if self._closed or not self._is_target_current():
            logger.debug(f"Skipped stale value commit for rule {self._rule_id}")
            return
        self._tree.set_value(self._rule_id, self._draft)

    def _is_target_current(self) -> bool:
        if not self._tree.contains(self._rule_id):
            return False
        rule = self._tree.find(self._rule_id)
        return (rule.field, rule.operator) == self._target

    def _on_tree_changed(self, root: RuleGroup, change: TreeChange) -> None:
        if self._handle is not None and not self._is_target_current():
            self.discard()
