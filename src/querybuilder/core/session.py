"""
Editing session: the object an embedding form talks to.

A session owns the rule tree, the validation results and the mode
controller. It emits one notification per committed mutation, carrying the
current root, or None when the textual expression does not parse.
"""

from typing import Callable, Iterable, Optional, Sequence

from ..infrastructure.logging_config import get_logger
from .debounce import DEFAULT_DEBOUNCE_MS, DebouncedValueCommit, TimerScheduler
from .editors import DEFAULT_GROUP_ORDER, OptionGroup, field_options
from .mode_sync import ModeSyncController
from .models import BuilderMode, Field, Rule, RuleGroup, ValidationResult
from .rule_tree import RuleTree, TreeChange
from .validation import is_valid, validate


logger = get_logger(__name__)


class QueryBuilderSession:
    """
    One query being edited.

    The tree is created from ``default_query`` (a copy is not taken; the
    session mutates it in place) or empty.
    """

    def __init__(
        self,
        fields: Sequence[Field],
        default_query: Optional[RuleGroup] = None,
        on_change: Optional[Callable[[Optional[RuleGroup]], None]] = None,
        exempt_field_names: Iterable[str] = (),
        default_field: Optional[str] = None,
        group_order: Sequence[str] = DEFAULT_GROUP_ORDER,
        mode: BuilderMode = BuilderMode.STRUCTURED,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ):
        self._fields = list(fields)
        self._exempt_field_names = frozenset(exempt_field_names)
        self._group_order = tuple(group_order)
        self._debounce_ms = debounce_ms
        self._on_change = on_change
        self._listeners: list[Callable[[Optional[RuleGroup]], None]] = []

        self._tree = RuleTree(self._fields, root=default_query, default_field=default_field)
        self._validation = self._revalidate()

        # Validation must be current before the controller notifies upward
        self._tree.subscribe(self._on_tree_changed)
        self._controller = ModeSyncController(self._tree, on_change=self._emit, mode=mode)

        logger.debug(f"Session started with {len(self._fields)} fields in {mode.value} mode")

    # ==================== State ====================

    @property
    def tree(self) -> RuleTree:
        return self._tree

    @property
    def root(self) -> RuleGroup:
        return self._tree.root

    @property
    def fields(self) -> list[Field]:
        return self._fields

    @property
    def controller(self) -> ModeSyncController:
        return self._controller

    @property
    def validation(self) -> dict[str, ValidationResult]:
        """Validation results keyed by rule id, current with the tree."""
        return self._validation

    @property
    def is_valid(self) -> bool:
        return is_valid(self._validation)

    @property
    def query_error(self) -> bool:
        return self._controller.query_error

    @property
    def mode(self) -> BuilderMode:
        return self._controller.mode

    @property
    def text(self) -> str:
        return self._controller.text

    @property
    def debounce_ms(self) -> int:
        return self._debounce_ms

    def result_for(self, rule_id: str) -> Optional[ValidationResult]:
        return self._validation.get(rule_id)

    def field_options(self) -> list[OptionGroup]:
        """Grouped options of the field selector."""
        return field_options(self._fields, self._group_order)

    # ==================== Observers ====================

    def subscribe(self, listener: Callable[[Optional[RuleGroup]], None]) -> Callable[[], None]:
        """
        Register an additional change listener.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, query: Optional[RuleGroup]) -> None:
        if self._on_change is not None:
            self._on_change(query)
        for listener in list(self._listeners):
            listener(query)

    def _on_tree_changed(self, root: RuleGroup, change: TreeChange) -> None:
        self._validation = self._revalidate()

    def _revalidate(self) -> dict[str, ValidationResult]:
        return validate(self._tree.root, self._tree.fields, self._exempt_field_names)

    # ==================== Mode ====================

    def switch_mode(self, mode: BuilderMode) -> bool:
        return self._controller.switch_mode(mode)

    def toggle_mode(self) -> bool:
        return self._controller.toggle()

    def set_text(self, text: str) -> None:
        """Apply an edit of the textual expression."""
        self._controller.text_changed_handler(text)

    # ==================== Mutations ====================

    def add_rule(self, parent_group_id: Optional[str] = None) -> Rule:
        return self._tree.add_rule(parent_group_id or self._tree.root.id)

    def add_group(self, parent_group_id: Optional[str] = None) -> RuleGroup:
        return self._tree.add_group(parent_group_id or self._tree.root.id)

    def remove_node(self, node_id: str) -> None:
        self._tree.remove_node(node_id)

    def set_field(self, rule_id: str, field_name: str) -> None:
        self._tree.set_field(rule_id, field_name)

    def set_operator(self, rule_id: str, operator_name: str) -> None:
        self._tree.set_operator(rule_id, operator_name)

    def set_value(self, rule_id: str, value) -> None:
        self._tree.set_value(rule_id, value)

    def set_combinator(self, group_id: str, combinator: str) -> None:
        self._tree.set_combinator(group_id, combinator)

    def set_negation(self, group_id: str, negated: bool) -> None:
        self._tree.set_negation(group_id, negated)

    def move_node(self, node_id: str, offset: int) -> None:
        self._tree.move_node(node_id, offset)

    def duplicate_node(self, node_id: str):
        return self._tree.duplicate_node(node_id)

    def load_query(self, query: RuleGroup) -> None:
        """Replace the whole query, e.g. with a loaded preset."""
        self._tree.replace_root(query)
        logger.info("Loaded query into session")

    def clear(self) -> None:
        self._tree.replace_root(RuleGroup())

    def value_commit(self, rule_id: str, scheduler: TimerScheduler) -> DebouncedValueCommit:
        """Create the debounced draft buffer of a free-text value editor."""
        return DebouncedValueCommit(self._tree, rule_id, scheduler, self._debounce_ms)
