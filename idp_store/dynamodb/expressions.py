"""
Condition and update expression evaluation over items.

The in-memory item store uses this module to honour the same expressions
callers send to DynamoDB, so conditional writes behave identically in
tests and local development.

Supported condition syntax:
    operand  = path | :value
    path     = name ('.' name)*          name is an identifier or #placeholder
    compare  = operand (= | <> | < | <= | > | >=) operand
             | operand BETWEEN operand AND operand
             | operand IN (operand, ...)
    function = attribute_exists(path) | attribute_not_exists(path)
             | begins_with(path, operand) | contains(path, operand)
    cond     = cond AND cond | cond OR cond | NOT cond | (cond)

Supported update syntax:
    SET path = value (, path = value)*
        value = operand | operand + operand | operand - operand
              | if_not_exists(path, operand) | list_append(operand, operand)
    REMOVE path (, path)*

Invariants:
    - Evaluation never mutates its input item; apply_update returns a copy
    - Comparisons involving a missing attribute are false, except <>
    - Numbers compare numerically, strings lexicographically

How to change safely:
    - Keep the grammar a subset of DynamoDB's; never accept syntax the
      real service would reject
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from ..codec.types import LIST_TAG, MAP_TAG, NUMBER_TAG, STRING_TAG, AttributeValue, Item

_TOKEN = re.compile(
    r"\s*(?:(?P<op><>|<=|>=|=|<|>)"
    r"|(?P<punct>[(),.+\-])"
    r"|(?P<name>#[A-Za-z0-9_]+)"
    r"|(?P<value>:[A-Za-z0-9_]+)"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_]*))"
)

_KEYWORDS = frozenset({"AND", "OR", "NOT", "BETWEEN", "IN", "SET", "REMOVE"})

Condition = Callable[[Item | None], bool]
Operand = Callable[[Item | None], AttributeValue | None]


class ExpressionError(ValueError):
    """An expression is malformed or references an undefined placeholder."""


# =============================================================================
# Tokenizer
# =============================================================================


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    end = len(expression.rstrip())
    while pos < end:
        match = _TOKEN.match(expression, pos)
        if not match or match.end() == pos or match.lastgroup is None:
            raise ExpressionError(
                f"Invalid syntax near '{expression[pos:pos + 20]}' in '{expression}'"
            )
        kind = match.lastgroup
        text = match.group(kind)
        if kind == "ident" and text.upper() in _KEYWORDS:
            kind, text = "keyword", text.upper()
        tokens.append((kind, text))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser producing closures over an item."""

    def __init__(
        self,
        expression: str,
        names: Mapping[str, str] | None,
        values: Mapping[str, AttributeValue] | None,
    ) -> None:
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0
        self.names = names or {}
        self.values = values or {}

    # -- token helpers --------------------------------------------------------

    def peek(self, offset: int = 0) -> tuple[str, str] | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def accept(self, kind: str, text: str | None = None) -> str | None:
        token = self.peek()
        if token and token[0] == kind and (text is None or token[1] == text):
            self.pos += 1
            return token[1]
        return None

    def expect(self, kind: str, text: str | None = None) -> str:
        found = self.accept(kind, text)
        if found is None:
            got = self.peek()
            raise ExpressionError(
                f"Expected {text or kind}, got {got[1] if got else 'end of expression'} "
                f"in '{self.expression}'"
            )
        return found

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    # -- operands -------------------------------------------------------------

    def path(self) -> list[str]:
        segments = [self._path_segment()]
        while self.accept("punct", "."):
            segments.append(self._path_segment())
        return segments

    def _path_segment(self) -> str:
        placeholder = self.accept("name")
        if placeholder is not None:
            if placeholder not in self.names:
                raise ExpressionError(f"Undefined attribute name placeholder {placeholder}")
            return self.names[placeholder]
        return self.expect("ident")

    def operand(self) -> Operand:
        placeholder = self.accept("value")
        if placeholder is not None:
            if placeholder not in self.values:
                raise ExpressionError(f"Undefined attribute value placeholder {placeholder}")
            literal = self.values[placeholder]
            return lambda item: literal
        segments = self.path()
        return lambda item: get_path(item, segments)

    # -- conditions -----------------------------------------------------------

    def condition(self) -> Condition:
        left = self._and()
        while self.accept("keyword", "OR"):
            right = self._and()
            left = _or(left, right)
        return left

    def _and(self) -> Condition:
        left = self._not()
        while self.accept("keyword", "AND"):
            right = self._not()
            left = _and(left, right)
        return left

    def _not(self) -> Condition:
        if self.accept("keyword", "NOT"):
            inner = self._not()
            return lambda item: not inner(item)
        return self._primary()

    def _primary(self) -> Condition:
        if self.accept("punct", "("):
            inner = self.condition()
            self.expect("punct", ")")
            return inner

        token = self.peek()
        following = self.peek(1)
        if token and token[0] == "ident" and following == ("punct", "("):
            return self._function()

        left = self.operand()
        if self.accept("keyword", "BETWEEN"):
            low = self.operand()
            self.expect("keyword", "AND")
            high = self.operand()
            return lambda item: compare(">=", left(item), low(item)) and compare(
                "<=", left(item), high(item)
            )
        if self.accept("keyword", "IN"):
            self.expect("punct", "(")
            candidates = [self.operand()]
            while self.accept("punct", ","):
                candidates.append(self.operand())
            self.expect("punct", ")")
            return lambda item: any(compare("=", left(item), c(item)) for c in candidates)

        op = self.expect("op")
        right = self.operand()
        return lambda item: compare(op, left(item), right(item))

    def _function(self) -> Condition:
        name = self.expect("ident")
        self.expect("punct", "(")
        segments = self.path()
        if name == "attribute_exists":
            self.expect("punct", ")")
            return lambda item: get_path(item, segments) is not None
        if name == "attribute_not_exists":
            self.expect("punct", ")")
            return lambda item: get_path(item, segments) is None
        if name in ("begins_with", "contains"):
            self.expect("punct", ",")
            arg = self.operand()
            self.expect("punct", ")")
            if name == "begins_with":
                return lambda item: _begins_with(get_path(item, segments), arg(item))
            return lambda item: _contains(get_path(item, segments), arg(item))
        raise ExpressionError(f"Unsupported function '{name}' in '{self.expression}'")

    # -- updates --------------------------------------------------------------

    def update(self) -> list[Callable[[Item], None]]:
        actions: list[Callable[[Item], None]] = []
        seen: set[str] = set()
        while not self.at_end():
            clause = self.expect("keyword")
            if clause in seen or clause not in ("SET", "REMOVE"):
                raise ExpressionError(f"Invalid update clause '{clause}' in '{self.expression}'")
            seen.add(clause)
            while True:
                actions.append(self._set_action() if clause == "SET" else self._remove_action())
                if not self.accept("punct", ","):
                    break
        if not actions:
            raise ExpressionError("Update expression is empty")
        return actions

    def _set_action(self) -> Callable[[Item], None]:
        segments = self.path()
        self.expect("op", "=")
        value = self._set_value()

        def action(item: Item) -> None:
            result = value(item)
            if result is None:
                raise ExpressionError(
                    f"SET operand for '{'.'.join(segments)}' refers to a missing attribute"
                )
            set_path(item, segments, result)

        return action

    def _set_value(self) -> Operand:
        token = self.peek()
        if token and token[0] == "ident" and self.peek(1) == ("punct", "("):
            name = self.expect("ident")
            self.expect("punct", "(")
            if name == "if_not_exists":
                segments = self.path()
                self.expect("punct", ",")
                fallback = self.operand()
                self.expect("punct", ")")

                def if_not_exists(item: Item | None) -> AttributeValue | None:
                    current = get_path(item, segments)
                    return current if current is not None else fallback(item)

                return if_not_exists
            if name == "list_append":
                first = self.operand()
                self.expect("punct", ",")
                second = self.operand()
                self.expect("punct", ")")
                return lambda item: _list_append(first(item), second(item))
            raise ExpressionError(f"Unsupported function '{name}' in '{self.expression}'")

        left = self.operand()
        sign = self.accept("punct", "+") or self.accept("punct", "-")
        if sign is None:
            return left
        right = self.operand()
        return lambda item: _arithmetic(sign, left(item), right(item))

    def _remove_action(self) -> Callable[[Item], None]:
        segments = self.path()
        return lambda item: remove_path(item, segments)


def _or(left: Condition, right: Condition) -> Condition:
    return lambda item: left(item) or right(item)


def _and(left: Condition, right: Condition) -> Condition:
    return lambda item: left(item) and right(item)


# =============================================================================
# Paths
# =============================================================================


def get_path(item: Item | None, segments: list[str]) -> AttributeValue | None:
    """Resolve a dotted path into an item; None if any segment is missing."""
    if not item:
        return None
    current: Any = item.get(segments[0])
    for segment in segments[1:]:
        if not isinstance(current, dict) or MAP_TAG not in current:
            return None
        current = current[MAP_TAG].get(segment)
    return current


def set_path(item: Item, segments: list[str], value: AttributeValue) -> None:
    container = _parent_map(item, segments)
    container[segments[-1]] = value


def remove_path(item: Item, segments: list[str]) -> None:
    try:
        container = _parent_map(item, segments)
    except ExpressionError:
        return
    container.pop(segments[-1], None)


def _parent_map(item: Item, segments: list[str]) -> dict[str, AttributeValue]:
    container: dict[str, AttributeValue] = item
    for segment in segments[:-1]:
        child = container.get(segment)
        if not isinstance(child, dict) or MAP_TAG not in child:
            raise ExpressionError(f"Document path '{'.'.join(segments)}' is invalid")
        container = child[MAP_TAG]
    return container


# =============================================================================
# Value semantics
# =============================================================================


def _number(value: AttributeValue) -> Decimal:
    try:
        return Decimal(value[NUMBER_TAG])
    except (InvalidOperation, KeyError, TypeError) as e:
        raise ExpressionError(f"Invalid number operand {value!r}") from e


def compare(op: str, left: AttributeValue | None, right: AttributeValue | None) -> bool:
    """Compare two tagged values with a comparator."""
    if left is None or right is None:
        return op == "<>" and left is not right
    if NUMBER_TAG in left and NUMBER_TAG in right:
        a: Any = _number(left)
        b: Any = _number(right)
    elif STRING_TAG in left and STRING_TAG in right:
        a, b = left[STRING_TAG], right[STRING_TAG]
    else:
        if op == "=":
            return left == right
        if op == "<>":
            return left != right
        return False
    if op == "=":
        return a == b
    if op == "<>":
        return a != b
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    return a >= b


def _begins_with(value: AttributeValue | None, prefix: AttributeValue | None) -> bool:
    if value is None or prefix is None:
        return False
    if STRING_TAG in value and STRING_TAG in prefix:
        return value[STRING_TAG].startswith(prefix[STRING_TAG])
    return False


def _contains(value: AttributeValue | None, needle: AttributeValue | None) -> bool:
    if value is None or needle is None:
        return False
    if STRING_TAG in value and STRING_TAG in needle:
        return needle[STRING_TAG] in value[STRING_TAG]
    if LIST_TAG in value:
        return any(compare("=", element, needle) for element in value[LIST_TAG])
    return False


def _arithmetic(
    sign: str, left: AttributeValue | None, right: AttributeValue | None
) -> AttributeValue:
    if left is None or right is None or NUMBER_TAG not in left or NUMBER_TAG not in right:
        raise ExpressionError("Arithmetic operands must be existing numbers")
    a, b = _number(left), _number(right)
    result = a + b if sign == "+" else a - b
    return {NUMBER_TAG: str(result)}


def _list_append(first: AttributeValue | None, second: AttributeValue | None) -> AttributeValue:
    if first is None or second is None or LIST_TAG not in first or LIST_TAG not in second:
        raise ExpressionError("list_append operands must be existing lists")
    return {LIST_TAG: [*first[LIST_TAG], *second[LIST_TAG]]}


# =============================================================================
# Public API
# =============================================================================


def evaluate_condition(
    expression: str,
    item: Item | None,
    names: Mapping[str, str] | None = None,
    values: Mapping[str, AttributeValue] | None = None,
) -> bool:
    """Evaluate a condition or filter expression against an item.

    Args:
        expression: Condition expression
        item: Current item, or None if it does not exist
        names: ExpressionAttributeNames
        values: ExpressionAttributeValues

    Returns:
        Whether the condition holds

    Raises:
        ExpressionError: If the expression is malformed
    """
    parser = _Parser(expression, names, values)
    condition = parser.condition()
    if not parser.at_end():
        raise ExpressionError(f"Unexpected trailing input in '{expression}'")
    return condition(item)


def apply_update(
    expression: str,
    item: Item | None,
    key: Item,
    names: Mapping[str, str] | None = None,
    values: Mapping[str, AttributeValue] | None = None,
) -> Item:
    """Apply an update expression and return the updated copy.

    A missing item is created from its key first, as DynamoDB does.

    Raises:
        ExpressionError: If the expression is malformed or updates the key
    """
    actions = _Parser(expression, names, values).update()
    updated = copy.deepcopy(item) if item else copy.deepcopy(dict(key))
    for action in actions:
        action(updated)
    for name, value in key.items():
        if updated.get(name) != value:
            raise ExpressionError(f"Cannot update key attribute '{name}'")
    return updated
