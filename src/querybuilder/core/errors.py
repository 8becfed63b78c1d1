"""
Exceptions raised by the query builder core.

User-input problems (an invalid rule, an expression that does not parse)
are reported as state by the session. These exceptions are raised for
misuse of the rule-tree API and by the expression parser itself.
"""


class QueryBuilderError(Exception):
    """Base class for all query builder errors."""


class TreeOperationError(QueryBuilderError):
    """Raised when a rule-tree mutation cannot be applied."""


class NodeNotFoundError(TreeOperationError, KeyError):
    """Raised when a node id does not exist in the tree."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"No node with id {self.node_id!r}"


class ExpressionSyntaxError(QueryBuilderError, ValueError):
    """
    Raised when a textual expression cannot be parsed.

    Attributes:
        message: Human readable description of the problem.
        position: Character offset in the source text where parsing failed.
    """

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} (at position {position})")
        self.message = message
        self.position = position
