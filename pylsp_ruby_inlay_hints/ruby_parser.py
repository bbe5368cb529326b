"""Ruby front end: tree-sitter-ruby parse trees adapted to the nodes module.

tree-sitter does the parsing; this module only maps its concrete syntax tree
onto the node model the hint collector understands:

  - ``rescue`` clauses become RescueClauseNode (``rescue_modifier`` does not,
    ``foo rescue bar`` is a different construct);
  - a ``pair`` with a key and no value (``{ var: }`` / ``call(var:)``) gets an
    ImplicitValueNode after its key;
  - everything else becomes a GenericNode carrying the tree-sitter node type.

What the omitted value refers to is decided syntactically, as Ruby's own
parser does: a capitalised key is a constant, a key naming a local variable
already introduced in the enclosing scope is a local variable read, anything
else is a method call.
"""
from __future__ import annotations
import logging
import re
import threading
from typing import List, Optional, Set, Tuple

import tree_sitter_ruby
from tree_sitter import Language, Parser
from tree_sitter import Node as TSNode

from .nodes import (
    ConstantReference,
    GenericNode,
    ImplicitValueNode,
    InnerExpression,
    LocalVariableReference,
    MethodCall,
    Node,
    RescueClauseNode,
    SourceSpan,
)

log = logging.getLogger(__name__)

# Scopes that start with no visible locals
_HARD_SCOPES = frozenset(("method", "singleton_method", "class", "singleton_class", "module"))
# Scopes that also see the locals of the enclosing scope
_SOFT_SCOPES = frozenset(("block", "do_block", "lambda"))

_PARAMETER_LISTS = frozenset(("method_parameters", "block_parameters", "lambda_parameters"))
_ASSIGNMENTS = frozenset(("assignment", "operator_assignment"))
# Containers that may appear on the left of a multiple assignment
_TARGET_LISTS = frozenset(("left_assignment_list", "destructured_left_assignment", "rest_assignment"))
# Constructs whose `pattern` field binds locals (case/in, `=>`, `in`)
_PATTERN_HOLDERS = frozenset(("in_clause", "match_pattern", "test_pattern"))
# Pattern containers searched for bindings; anything else binds nothing
_PATTERN_CONTAINERS = frozenset((
    "array_pattern", "find_pattern", "hash_pattern",
    "parenthesized_pattern", "alternative_pattern",
))
# Only groups named like a local variable become locals
_NAMED_GROUP = re.compile(r"\(\?<([a-z_][A-Za-z0-9_]*)>")

_PARSER: Optional[Parser] = None
_PARSER_LOCK = threading.Lock()


def _get_parser() -> Parser:
    global _PARSER
    if _PARSER is None:
        _PARSER = Parser(Language(tree_sitter_ruby.language()))
        log.info("pylsp_ruby_inlay_hints: tree-sitter Ruby parser loaded")
    return _PARSER


def parse(source: str) -> Node:
    """Parse Ruby *source* and return the ``program`` node."""
    data = source.encode("utf-8")
    with _PARSER_LOCK:
        tree = _get_parser().parse(data)
    if tree.root_node.has_error:
        log.debug("pylsp_ruby_inlay_hints: source has syntax errors, hints may be partial")
    return _TreeBuilder(data).build(tree.root_node)


def _span(node: TSNode) -> SourceSpan:
    # tree-sitter rows are 0-based, SourceSpan lines are 1-based.
    # Columns are UTF-8 byte offsets, not UTF-16 code units.
    return SourceSpan(
        start_line=node.start_point[0] + 1,
        start_column=node.start_point[1],
        end_line=node.end_point[0] + 1,
        end_column=node.end_point[1],
    )


class _Scope:
    """Local variables visible at a point of the walk."""

    def __init__(self, parent: Optional["_Scope"] = None) -> None:
        self.parent = parent
        self.names: Set[str] = set()

    def declare(self, name: str) -> None:
        self.names.add(name)

    def __contains__(self, name: str) -> bool:
        scope: Optional[_Scope] = self
        while scope is not None:
            if name in scope.names:
                return True
            scope = scope.parent
        return False


class _Frame:
    __slots__ = ("ts_node", "ts_children", "next", "built", "scope")

    def __init__(self, ts_node: TSNode, scope: Optional[_Scope]) -> None:
        self.ts_node = ts_node
        self.ts_children = ts_node.named_children
        self.next = 0
        self.built: List[Node] = []
        # Scope this node opened, if any; restored on leave
        self.scope = scope


class _TreeBuilder:
    """Converts one tree-sitter tree, tracking locals in document order."""

    def __init__(self, source: bytes) -> None:
        self._source = source
        self._scope = _Scope()

    def build(self, root: TSNode) -> Node:
        # Iterative post-order walk; locals are declared on entry so that a
        # later sibling (or an assignment's own right-hand side) sees them.
        stack: List[_Frame] = [self._enter(root)]
        while True:
            frame = stack[-1]
            if frame.next < len(frame.ts_children):
                child = frame.ts_children[frame.next]
                frame.next += 1
                stack.append(self._enter(child))
                continue

            stack.pop()
            node = self._leave(frame)
            if not stack:
                return node
            stack[-1].built.append(node)

    def _text(self, node: TSNode) -> str:
        return self._source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def _enter(self, node: TSNode) -> _Frame:
        opened = None
        if node.type in _HARD_SCOPES:
            opened = self._scope
            self._scope = _Scope()
        elif node.type in _SOFT_SCOPES:
            opened = self._scope
            self._scope = _Scope(parent=self._scope)

        self._declare_locals(node)
        return _Frame(node, opened)

    def _leave(self, frame: _Frame) -> Node:
        node = frame.ts_node
        children = tuple(frame.built)

        if node.type == "rescue":
            result: Node = RescueClauseNode(
                span=_span(node),
                exceptions=self._exception_names(node),
                children=children,
            )
        elif node.type == "pair" and self._is_shorthand(node):
            key = node.child_by_field_name("key")
            implicit = ImplicitValueNode(span=_span(key), value=self._implicit_value(key))
            result = GenericNode(kind=node.type, span=_span(node), children=children + (implicit,))
        else:
            result = GenericNode(kind=node.type, span=_span(node), children=children)

        if frame.scope is not None:
            self._scope = frame.scope
        return result

    # -- rescue ------------------------------------------------------------

    def _exception_names(self, node: TSNode) -> Tuple[str, ...]:
        for child in node.named_children:
            if child.type == "exceptions":
                return tuple(self._text(exc) for exc in child.named_children)
        return ()

    # -- implicit hash values ----------------------------------------------

    @staticmethod
    def _is_shorthand(node: TSNode) -> bool:
        return node.child_by_field_name("key") is not None and node.child_by_field_name("value") is None

    def _implicit_value(self, key: TSNode) -> InnerExpression:
        name = self._text(key).rstrip(":").strip()
        span = _span(key)
        if name[:1].isupper() and not name.endswith(("?", "!")):
            return ConstantReference(name=name, span=span)
        if name in self._scope:
            return LocalVariableReference(name=name, span=span)
        return MethodCall(name=name, span=span)

    # -- local variable tracking -------------------------------------------

    def _declare_locals(self, node: TSNode) -> None:
        kind = node.type
        if kind in _ASSIGNMENTS:
            self._declare_targets(node.child_by_field_name("left"))
        elif kind in _PARAMETER_LISTS:
            for param in node.named_children:
                self._declare_parameter(param)
        elif kind == "exception_variable":
            for child in node.named_children:
                self._declare_targets(child)
        elif kind == "for":
            self._declare_targets(node.child_by_field_name("pattern"))
        elif kind in _PATTERN_HOLDERS:
            self._declare_pattern(node.child_by_field_name("pattern"))
        elif kind == "binary":
            self._declare_named_captures(node)

    def _declare_targets(self, target: Optional[TSNode]) -> None:
        if target is None:
            return
        if target.type == "identifier":
            self._scope.declare(self._text(target))
        elif target.type in _TARGET_LISTS:
            for child in target.named_children:
                self._declare_targets(child)

    def _declare_parameter(self, param: TSNode) -> None:
        if param.type == "identifier":
            self._scope.declare(self._text(param))
        elif param.type == "destructured_parameter":
            for child in param.named_children:
                self._declare_parameter(child)
        else:
            # optional/keyword/splat/hash_splat/block parameters
            name = param.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                self._scope.declare(self._text(name))

    def _declare_pattern(self, pattern: Optional[TSNode]) -> None:
        if pattern is None:
            return
        kind = pattern.type
        if kind == "identifier":
            self._scope.declare(self._text(pattern))
        elif kind == "keyword_pattern":
            # `in {name:}` binds `name`; `in {name: String => n}` binds inside the value
            value = pattern.child_by_field_name("value")
            if value is not None:
                self._declare_pattern(value)
                return
            key = pattern.child_by_field_name("key")
            if key is not None:
                self._scope.declare(self._text(key).strip("\"':"))
        elif kind == "as_pattern":
            self._declare_pattern(pattern.child_by_field_name("value"))
            self._declare_pattern(pattern.child_by_field_name("name"))
        elif kind in ("splat_parameter", "hash_splat_parameter"):
            self._declare_pattern(pattern.child_by_field_name("name"))
        elif kind in _PATTERN_CONTAINERS:
            for child in pattern.named_children:
                self._declare_pattern(child)

    def _declare_named_captures(self, node: TSNode) -> None:
        # `/(?<year>\d+)/ =~ s` defines `year`, only for a literal regex on the left
        operator = node.child_by_field_name("operator")
        left = node.child_by_field_name("left")
        if operator is None or operator.type != "=~" or left is None or left.type != "regex":
            return
        if any(child.type == "interpolation" for child in left.named_children):
            return
        for name in _NAMED_GROUP.findall(self._text(left)):
            self._scope.declare(name)
