"""Expression parsing: locate ``${{ ... }}`` references and build token trees.

Two layers:

- ``parse_expressions()`` scans a template string and returns every
  top-level reference with exact offsets, so adapters can splice
  placeholders (or values) back into the original text.
- ``parse_inner()`` turns the inner text of one reference into a small
  tagged tree (``Variable`` / ``FunctionCall`` / ``Literal``) that the
  evaluator walks once.

Both are pure functions of their input text.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypeAlias

OPEN_DELIMITER = "${{"
CLOSE_DELIMITER = "}}"

_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_FUNCTION_RE = re.compile(r"^([A-Za-z_]\w*)\((.*)\)$", re.DOTALL)
_CALL_PREFIX_RE = re.compile(r"^\w+\(")


@dataclass(frozen=True, slots=True)
class ExpressionRef:
    """One delimited expression found in a template string.

    ``match`` is the full text including delimiters, ``inner`` the trimmed
    expression between them. ``template[start:end] == match`` always holds.
    """

    match: str
    inner: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class Variable:
    """``namespace.seg1.seg2``: a property chain into one request namespace."""

    namespace: str
    path: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """``name(arg, ...)``: arguments are themselves nodes."""

    name: str
    args: tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class Literal:
    """A quoted string, a number, or ``null``."""

    value: str | int | float | None


Node: TypeAlias = Variable | FunctionCall | Literal


# -- Template scanning --


def parse_expressions(
    template: str,
    open_delimiter: str = OPEN_DELIMITER,
    close_delimiter: str = CLOSE_DELIMITER,
) -> list[ExpressionRef]:
    """Return every top-level expression in *template*, left to right.

    Nested open delimiters increase the depth, close delimiters decrease
    it, and single-quoted string literals (with ``\\'`` escapes) are skipped
    so delimiters inside them don't count. An unterminated expression ends
    the scan: the rest of the template is plain text.

    Examples::

        parse_expressions("id = ${{ path.id }}")
        # [ExpressionRef(match="${{ path.id }}", inner="path.id", start=5, end=19)]
    """
    refs: list[ExpressionRef] = []
    pos = 0
    while pos < len(template):
        open_pos = template.find(open_delimiter, pos)
        if open_pos == -1:
            break
        inner_start = open_pos + len(open_delimiter)
        close_pos = _find_closing_delimiter(template, inner_start, open_delimiter, close_delimiter)
        if close_pos == -1:
            break
        end = close_pos + len(close_delimiter)
        refs.append(
            ExpressionRef(
                match=template[open_pos:end],
                inner=template[inner_start:close_pos].strip(),
                start=open_pos,
                end=end,
            )
        )
        pos = end
    return refs


def _find_closing_delimiter(
    template: str,
    start: int,
    open_delimiter: str,
    close_delimiter: str,
) -> int:
    """Return the index of the matching close delimiter, or -1."""
    depth = 1
    pos = start
    while pos < len(template):
        if template.startswith(close_delimiter, pos):
            depth -= 1
            if depth == 0:
                return pos
            pos += len(close_delimiter)
        elif template.startswith(open_delimiter, pos):
            depth += 1
            pos += len(open_delimiter)
        elif template[pos] == "'":
            pos = _skip_string(template, pos)
        else:
            pos += 1
    return -1


def _skip_string(text: str, pos: int) -> int:
    """Return the index just past the string literal opening at *pos*."""
    pos += 1
    while pos < len(text) and text[pos] != "'":
        if text[pos] == "\\" and pos + 1 < len(text):
            pos += 2
        else:
            pos += 1
    return pos + 1


# -- Inner expression language --


def is_function_call(inner: str) -> bool:
    """Heuristic used by adapters: an identifier immediately followed by ``(``."""
    return _CALL_PREFIX_RE.match(inner.strip()) is not None


def parse_inner(inner: str) -> Node:
    """Parse the inner text of one expression (or one argument) into a node."""
    text = inner.strip()

    if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
        return Literal(text[1:-1].replace("\\'", "'"))

    if _NUMBER_RE.match(text):
        return Literal(float(text) if "." in text else int(text))

    if text == "null":
        return Literal(None)

    match = _FUNCTION_RE.match(text)
    if match is not None:
        name, arg_text = match.groups()
        return FunctionCall(name, tuple(parse_inner(arg) for arg in split_arguments(arg_text)))

    return parse_variable(text)


def parse_variable(ref: str) -> Variable:
    """Split ``namespace.seg1.seg2`` into a ``Variable`` node."""
    namespace, *path = (part.strip() for part in ref.strip().split("."))
    return Variable(namespace, tuple(path))


def parse_function(expr: str) -> FunctionCall | None:
    """Parse ``name(args)``; return ``None`` if *expr* is not a call."""
    node = parse_inner(expr)
    if isinstance(node, FunctionCall):
        return node
    return None


def split_arguments(text: str) -> list[str]:
    """Split a call's argument text on top-level commas.

    Commas inside nested parentheses or quoted strings are not separators.
    Blank arguments are dropped.
    """
    args: list[str] = []
    depth = 0
    start = 0
    pos = 0
    while pos < len(text):
        char = text[pos]
        if char == "'":
            pos = _skip_string(text, pos)
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == "," and depth == 0:
            args.append(text[start:pos])
            start = pos + 1
        pos += 1
    args.append(text[start:])
    return [arg.strip() for arg in args if arg.strip()]


def walk(node: Node) -> Iterator[Node]:
    """Yield *node* and every node nested inside it, depth first."""
    yield node
    if isinstance(node, FunctionCall):
        for arg in node.args:
            yield from walk(arg)
