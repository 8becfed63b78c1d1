"""
Textual form of a query.

Queries are written as CEL-style boolean expressions, for example::

    cos_provider == "aws" && (region in ["eu-west-1", "us-east-1"] || !service.contains("ec2"))

Serialization rules:

- every nested group is wrapped in parentheses, a negated group in ``!( )``;
- the children of a group are joined by ``&&`` (and) or ``||`` (or);
- an empty ``and`` group is written ``true`` (the empty root as ``""``), an
  empty ``or`` group ``false``, and a single-child ``or`` group as
  ``child || false``.

The parser drops ``true`` inside ``&&`` chains and ``false`` inside ``||``
chains (they are the identity of the chain), which makes
``parse(serialize(group)) == group`` for every tree the structured editor
builds. When ``&&`` and ``||`` are mixed at one level, ``&&`` binds tighter
and each ``&&`` run becomes a nested group.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from .errors import ExpressionSyntaxError, QueryBuilderError
from .models import COMBINATOR_AND, COMBINATOR_OR, Rule, RuleGroup, dedupe, normalize_value


# Comparison tokens mapped to operator names
COMPARISON_OPERATORS = {
    '==': '=',
    '!=': '!=',
    '<': '<',
    '<=': '<=',
    '>': '>',
    '>=': '>=',
}

# String methods mapped to (operator, negated operator)
STRING_METHODS = {
    'contains': ('contains', 'doesNotContain'),
    'startsWith': ('beginsWith', 'doesNotBeginWith'),
    'endsWith': ('endsWith', 'doesNotEndWith'),
}

KEYWORDS = frozenset({'in', 'null', 'true', 'false'})

_IDENT_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
_NUMBER_RE = re.compile(r'-?\d+(?:\.\d+)?')

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', "'": "'"}


# ============================================================================
# Tokenizer
# ============================================================================

@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(text: str) -> list[Token]:
    """
    Split an expression into tokens.

    Raises:
        ExpressionSyntaxError: On an unexpected character or an unterminated
            string or quoted field name.
    """
    tokens: list[Token] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch.isspace():
            i += 1
            continue

        two = text[i:i + 2]
        if two == '&&':
            tokens.append(Token('AND', two, i))
            i += 2
            continue
        if two == '||':
            tokens.append(Token('OR', two, i))
            i += 2
            continue
        if two in ('==', '!=', '<=', '>='):
            tokens.append(Token('OP', two, i))
            i += 2
            continue
        if ch in '<>':
            tokens.append(Token('OP', ch, i))
            i += 1
            continue
        if ch == '!':
            tokens.append(Token('NOT', ch, i))
            i += 1
            continue
        if ch in '()[],.':
            tokens.append(Token(ch, ch, i))
            i += 1
            continue

        if ch in '"\'':
            value, end = _read_string(text, i)
            tokens.append(Token('STRING', value, i))
            i = end
            continue

        if ch == '`':
            end = text.find('`', i + 1)
            if end < 0:
                raise ExpressionSyntaxError("Unterminated quoted field name", i)
            tokens.append(Token('IDENT', text[i + 1:end], i))
            i = end + 1
            continue

        number = _NUMBER_RE.match(text, i)
        if number:
            tokens.append(Token('NUMBER', number.group(), i))
            i = number.end()
            continue

        ident = _IDENT_RE.match(text, i)
        if ident:
            word = ident.group()
            kind = word.upper() if word in KEYWORDS else 'IDENT'
            tokens.append(Token(kind, word, i))
            i = ident.end()
            continue

        raise ExpressionSyntaxError(f"Unexpected character {ch!r}", i)

    tokens.append(Token('EOF', '', len(text)))
    return tokens


def _read_string(text: str, start: int) -> tuple[str, int]:
    quote = text[start]
    chars = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == '\\' and i + 1 < len(text):
            nxt = text[i + 1]
            chars.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            return ''.join(chars), i + 1
        chars.append(ch)
        i += 1
    raise ExpressionSyntaxError("Unterminated string", start)


# ============================================================================
# Parser
# ============================================================================

class _Identity:
    """A bare ``true`` or ``false`` literal inside a chain."""

    def __init__(self, value: bool):
        self.value = value


_TRUE = _Identity(True)
_FALSE = _Identity(False)

_Item = Union[Rule, RuleGroup, _Identity]


class _Parser:
    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _eat(self, kind: str, expected: Optional[str] = None) -> Token:
        tok = self._peek()
        if tok.kind != kind:
            raise ExpressionSyntaxError(
                f"Expected {expected or kind}, got {_describe(tok)}", tok.position
            )
        self.pos += 1
        return tok

    def parse(self) -> RuleGroup:
        if self._peek().kind == 'EOF':
            return RuleGroup()
        chains = self._parse_chains()
        self._eat('EOF', 'end of expression')
        if len(chains) == 1 and len(chains[0]) == 1:
            only = chains[0][0]
            # A lone negated group is the negated root itself
            if isinstance(only, RuleGroup) and only.negated:
                return only
        return _build_group(chains)

    def _parse_chains(self) -> list[list[_Item]]:
        chains = [self._parse_and_chain()]
        while self._peek().kind == 'OR':
            self._eat('OR')
            chains.append(self._parse_and_chain())
        return chains

    def _parse_and_chain(self) -> list[_Item]:
        items = [self._parse_unary()]
        while self._peek().kind == 'AND':
            self._eat('AND')
            items.append(self._parse_unary())
        return items

    def _parse_unary(self) -> _Item:
        if self._peek().kind != 'NOT':
            return self._parse_primary()

        not_token = self._eat('NOT')
        tok = self._peek()
        if tok.kind == '(':
            self._eat('(')
            if self._peek().kind == ')':
                self._eat(')')
                return RuleGroup(negated=True)
            chains = self._parse_chains()
            self._eat(')', "')'")
            if len(chains) == 1 and len(chains[0]) == 1:
                only = chains[0][0]
                if isinstance(only, Rule) and only.operator == 'in':
                    return Rule(field=only.field, operator='notIn', value=only.value)
            group = _build_group(chains)
            group.negated = True
            return group

        if tok.kind == 'IDENT':
            rule = self._parse_comparison()
            for positive, negative in STRING_METHODS.values():
                if rule.operator == positive:
                    rule.operator = negative
                    return rule
        raise ExpressionSyntaxError(
            "'!' must be followed by a parenthesized expression or a string method call",
            not_token.position,
        )

    def _parse_primary(self) -> _Item:
        tok = self._peek()
        if tok.kind == '(':
            self._eat('(')
            if self._peek().kind == ')':
                self._eat(')')
                return RuleGroup()
            chains = self._parse_chains()
            self._eat(')', "')'")
            return _build_group(chains)
        if tok.kind == 'TRUE':
            self._eat('TRUE')
            return _TRUE
        if tok.kind == 'FALSE':
            self._eat('FALSE')
            return _FALSE
        if tok.kind == 'IDENT':
            return self._parse_comparison()
        raise ExpressionSyntaxError(f"Expected a condition, got {_describe(tok)}", tok.position)

    def _parse_comparison(self) -> Rule:
        field_name = self._eat('IDENT', 'a field name').value
        tok = self._peek()

        if tok.kind == '.':
            self._eat('.')
            method = self._eat('IDENT', 'a method name')
            if method.value not in STRING_METHODS:
                raise ExpressionSyntaxError(f"Unknown method {method.value!r}", method.position)
            self._eat('(', "'('")
            value = self._parse_literal()
            self._eat(')', "')'")
            return Rule(field=field_name, operator=STRING_METHODS[method.value][0], value=value)

        if tok.kind == 'IN':
            self._eat('IN')
            self._eat('[', "'['")
            values = []
            if self._peek().kind != ']':
                values.append(self._parse_literal())
                while self._peek().kind == ',':
                    self._eat(',')
                    values.append(self._parse_literal())
            self._eat(']', "']'")
            return Rule(field=field_name, operator='in', value=dedupe(values))

        if tok.kind == 'OP':
            self._eat('OP')
            if self._peek().kind == 'NULL':
                null_token = self._eat('NULL')
                if tok.value == '==':
                    return Rule(field=field_name, operator='null', value='')
                if tok.value == '!=':
                    return Rule(field=field_name, operator='notNull', value='')
                raise ExpressionSyntaxError("null can only be compared with == or !=", null_token.position)
            value = self._parse_literal()
            return Rule(field=field_name, operator=COMPARISON_OPERATORS[tok.value], value=value)

        raise ExpressionSyntaxError(
            f"Expected an operator after {field_name!r}, got {_describe(tok)}", tok.position
        )

    def _parse_literal(self) -> str:
        tok = self._peek()
        if tok.kind in ('STRING', 'NUMBER', 'TRUE', 'FALSE'):
            self.pos += 1
            return tok.value
        raise ExpressionSyntaxError(f"Expected a value, got {_describe(tok)}", tok.position)


def _describe(tok: Token) -> str:
    if tok.kind == 'EOF':
        return 'end of expression'
    return repr(tok.value)


def _build_group(chains: list[list[_Item]]) -> RuleGroup:
    """Turn `||`-separated chains of `&&`-joined items into a group."""
    if len(chains) == 1:
        chain = chains[0]
        if len(chain) == 1 and chain[0] is _FALSE:
            return RuleGroup(combinator=COMBINATOR_OR)
        rules = []
        for item in chain:
            if item is _TRUE:
                continue
            rules.append(RuleGroup(combinator=COMBINATOR_OR) if item is _FALSE else item)
        return RuleGroup(combinator=COMBINATOR_AND, rules=rules)

    rules = []
    for chain in chains:
        if len(chain) > 1:
            rules.append(_build_group([chain]))
        elif chain[0] is _FALSE:
            continue
        elif chain[0] is _TRUE:
            rules.append(RuleGroup(combinator=COMBINATOR_AND))
        else:
            rules.append(chain[0])
    return RuleGroup(combinator=COMBINATOR_OR, rules=rules)


def parse(text: str) -> RuleGroup:
    """
    Parse a textual expression into a rule group.

    Args:
        text: The expression. Blank text yields an empty AND group.

    Returns:
        A new RuleGroup with fresh node ids.

    Raises:
        ExpressionSyntaxError: If the text is not a well-formed expression.
    """
    return _Parser(tokenize(text)).parse()


# ============================================================================
# Serializer
# ============================================================================

def serialize(root: RuleGroup) -> str:
    """
    Serialize a rule group to its textual expression.

    Raises:
        QueryBuilderError: If a rule uses an operator with no textual form.
    """
    if root.negated:
        return f"!({_serialize_body(root, guard_single_in=True)})"
    if root.combinator == COMBINATOR_AND and not root.rules:
        return ''
    body = _serialize_body(root)
    # Keep a lone negated child from being read back as a negated root
    if (root.combinator == COMBINATOR_AND and len(root.rules) == 1
            and isinstance(root.rules[0], RuleGroup) and root.rules[0].negated):
        body += ' && true'
    return body


def _serialize_body(group: RuleGroup, guard_single_in: bool = False) -> str:
    parts = [_serialize_node(child) for child in group.rules]
    if group.combinator == COMBINATOR_OR:
        if not parts:
            return 'false'
        if len(parts) == 1:
            return f"{parts[0]} || false"
        return ' || '.join(parts)

    if not parts:
        return 'true'
    if guard_single_in and len(parts) == 1:
        only = group.rules[0]
        # `!(f in [...])` alone reads back as a notIn rule
        if isinstance(only, Rule) and only.operator == 'in':
            return f"{parts[0]} && true"
    return ' && '.join(parts)


def _serialize_node(node: Union[Rule, RuleGroup]) -> str:
    if isinstance(node, Rule):
        return serialize_rule(node)
    if node.negated:
        return f"!({_serialize_body(node, guard_single_in=True)})"
    return f"({_serialize_body(node)})"


def serialize_rule(rule: Rule) -> str:
    """Serialize a single rule."""
    name = _format_field(rule.field)
    operator = rule.operator
    value = normalize_value(operator, rule.value)

    if operator == 'null':
        return f"{name} == null"
    if operator == 'notNull':
        return f"{name} != null"
    if operator in ('in', 'notIn'):
        items = ', '.join(quote(v) for v in value)
        text = f"{name} in [{items}]"
        return text if operator == 'in' else f"!({text})"
    for method, (positive, negative) in STRING_METHODS.items():
        if operator == positive:
            return f"{name}.{method}({quote(value)})"
        if operator == negative:
            return f"!{name}.{method}({quote(value)})"
    for token, op_name in COMPARISON_OPERATORS.items():
        if operator == op_name:
            return f"{name} {token} {quote(value)}"
    raise QueryBuilderError(f"Operator {operator!r} has no textual form")


def quote(value: str) -> str:
    """Quote a value as a double-quoted string literal."""
    escaped = (
        value.replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
        .replace('\t', '\\t')
        .replace('\r', '\\r')
    )
    return f'"{escaped}"'


def _format_field(name: str) -> str:
    if _IDENT_RE.fullmatch(name) and name not in KEYWORDS:
        return name
    if '`' in name or not name:
        raise QueryBuilderError(f"Field name {name!r} cannot be written in an expression")
    return f"`{name}`"
