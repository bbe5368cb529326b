"""Syntax-tree node model consumed by the inlay-hint collector.

The tree is produced by ruby_parser (or built by hand in tests) and walked by
dispatcher.Dispatcher. Only the two node kinds that carry hints have their
own classes; everything else is a GenericNode tagged with the parser's kind.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class SourceSpan:
    """Location of a node: 1-based lines, 0-based columns."""
    start_line: int
    start_column: int
    end_line: int
    end_column: int


# ---------------------------------------------------------------------------
# Inner expressions (the value wrapped by an implicit hash value)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MethodCall:
    name: str
    span: SourceSpan

    @property
    def children(self) -> Tuple["Node", ...]:
        return ()


@dataclass(frozen=True)
class ConstantReference:
    name: str
    span: SourceSpan

    @property
    def children(self) -> Tuple["Node", ...]:
        return ()


@dataclass(frozen=True)
class LocalVariableReference:
    name: str
    span: SourceSpan

    @property
    def children(self) -> Tuple["Node", ...]:
        return ()


@dataclass(frozen=True)
class OtherExpression:
    """Any expression kind the hint collector does not special-case."""
    kind: str
    span: SourceSpan

    @property
    def children(self) -> Tuple["Node", ...]:
        return ()


InnerExpression = Union[MethodCall, ConstantReference, LocalVariableReference, OtherExpression]


# ---------------------------------------------------------------------------
# Statement-level nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RescueClauseNode:
    """A ``rescue`` clause. ``exceptions`` is empty for a bare rescue."""
    span: SourceSpan
    exceptions: Tuple[str, ...] = ()
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class ImplicitValueNode:
    """The omitted value of a ``key:`` shorthand entry (``{ var: }``)."""
    span: SourceSpan
    value: InnerExpression

    @property
    def children(self) -> Tuple["Node", ...]:
        return (self.value,)


@dataclass(frozen=True)
class GenericNode:
    kind: str
    span: SourceSpan
    children: Tuple["Node", ...] = ()


Node = Union[
    GenericNode,
    RescueClauseNode,
    ImplicitValueNode,
    MethodCall,
    ConstantReference,
    LocalVariableReference,
    OtherExpression,
]
