"""
Synchronization between the structured and textual authoring surfaces.

The rule tree stays the single source of truth. In textual mode every edit
is parsed; a well-formed expression replaces the tree, a malformed one
leaves the tree untouched and raises the query-error flag.
"""

from typing import Callable, Optional

from ..infrastructure.logging_config import get_logger
from .errors import ExpressionSyntaxError, QueryBuilderError
from .expression import parse, serialize
from .models import BuilderMode, RuleGroup
from .rule_tree import RuleTree, TreeChange


logger = get_logger(__name__)


QueryListener = Callable[[Optional[RuleGroup]], None]
TextListener = Callable[[str], None]


class ModeSyncController:
    """
    Keeps the textual expression and the rule tree equivalent.

    Upward notifications go through ``change_handler`` and textual edits come
    in through ``text_changed_handler``. Both handlers are created once per
    controller, so editors can hold on to them for the whole session.
    """

    def __init__(
        self,
        tree: RuleTree,
        on_change: Optional[QueryListener] = None,
        mode: BuilderMode = BuilderMode.STRUCTURED,
    ):
        """
        Initialize the controller.

        Args:
            tree: The session's rule tree.
            on_change: Receives the tree after every committed change, or
                None when the textual expression does not parse.
            mode: Initial authoring surface.
        """
        self._tree = tree
        self._on_change = on_change
        self._mode = BuilderMode.STRUCTURED
        self._text = ''
        self._error: Optional[ExpressionSyntaxError] = None
        self._applying_text = False
        self._text_listeners: list[TextListener] = []

        self._change_handler = self._make_change_handler()
        self._text_changed_handler = self._make_text_changed_handler()

        tree.subscribe(self._on_tree_changed)

        if mode is BuilderMode.TEXTUAL:
            self.switch_mode(BuilderMode.TEXTUAL)

    # ==================== State ====================

    @property
    def mode(self) -> BuilderMode:
        return self._mode

    @property
    def text(self) -> str:
        """The expression currently shown by the textual editor."""
        return self._text

    @property
    def query_error(self) -> bool:
        """Whether the shown expression failed to parse."""
        return self._error is not None

    @property
    def error(self) -> Optional[ExpressionSyntaxError]:
        return self._error

    @property
    def change_handler(self) -> QueryListener:
        """Identity-stable callback forwarding changes to the embedding form."""
        return self._change_handler

    @property
    def text_changed_handler(self) -> TextListener:
        """Identity-stable callback the textual editor reports its text to."""
        return self._text_changed_handler

    def subscribe_text(self, listener: TextListener) -> Callable[[], None]:
        """
        Register a listener for text replaced by the controller itself.

        Returns:
            A callable that removes the listener.
        """
        self._text_listeners.append(listener)

        def unsubscribe():
            if listener in self._text_listeners:
                self._text_listeners.remove(listener)

        return unsubscribe

    # ==================== Mode switching ====================

    def switch_mode(self, mode: BuilderMode) -> bool:
        """
        Switch the authoring surface.

        Returns:
            True if the requested mode is now active. Switching back to the
            structured editor is refused while the expression does not parse.
        """
        if mode is self._mode:
            return True

        if mode is BuilderMode.TEXTUAL:
            try:
                text = serialize(self._tree.root)
            except QueryBuilderError as e:
                logger.warning(f"Cannot switch to textual mode: {e}")
                return False
            self._mode = BuilderMode.TEXTUAL
            self._error = None
            self._replace_text(text)
            logger.info("Switched to textual mode")
            return True

        if self._error is not None:
            logger.warning(f"Cannot switch to structured mode, expression does not parse: {self._error}")
            return False

        self._mode = BuilderMode.STRUCTURED
        logger.info("Switched to structured mode")
        return True

    def toggle(self) -> bool:
        """Switch to the other authoring surface."""
        if self._mode is BuilderMode.STRUCTURED:
            return self.switch_mode(BuilderMode.TEXTUAL)
        return self.switch_mode(BuilderMode.STRUCTURED)

    # ==================== Textual edits ====================

    def _make_text_changed_handler(self) -> TextListener:
        def handle_text_changed(text: str) -> None:
            self._apply_text(text)

        return handle_text_changed

    def _make_change_handler(self) -> QueryListener:
        def handle_query_change(query: Optional[RuleGroup]) -> None:
            if self._on_change is not None:
                self._on_change(query)

        return handle_query_change

    def _apply_text(self, text: str) -> None:
        if self._mode is not BuilderMode.TEXTUAL:
            logger.warning("Ignoring expression edit outside textual mode")
            return

        # Echo of the text we already hold
        if text == self._text:
            return

        self._text = text
        try:
            group = parse(text)
        except ExpressionSyntaxError as e:
            logger.debug(f"Expression does not parse: {e}")
            self._error = e
            self._change_handler(None)
            return

        self._error = None
        self._applying_text = True
        try:
            self._tree.replace_root(group)
        finally:
            self._applying_text = False

    def _replace_text(self, text: str) -> None:
        self._text = text
        for listener in list(self._text_listeners):
            listener(text)

    def _on_tree_changed(self, root: RuleGroup, change: TreeChange) -> None:
        if self._mode is BuilderMode.TEXTUAL and not self._applying_text:
            # Changed from outside the textual editor, e.g. a loaded preset
            self._error = None
            self._replace_text(serialize(root))
        self._change_handler(root)
