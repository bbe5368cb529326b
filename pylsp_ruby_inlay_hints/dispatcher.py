"""Single-pass tree walker that fires per-kind callbacks in document order."""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Type

from .nodes import Node

log = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class Dispatcher:
    """Walk a node tree once and notify listeners registered per node class.

    Listeners fire on node entry, before the node's children are visited, so
    the sequence of callbacks follows the source top-to-bottom and
    left-to-right, nested constructs right after their parent.
    """

    def __init__(self) -> None:
        self._listeners: Dict[Type[Any], List[Callback]] = {}

    def register(self, node_kind: Type[Any], callback: Callback) -> None:
        self._listeners.setdefault(node_kind, []).append(callback)

    def dispatch(self, root: Node) -> None:
        # Explicit stack: deeply nested Ruby must not hit the recursion limit.
        # Children are pushed reversed so the leftmost one is popped first.
        stack: List[Node] = [root]
        visited = 0
        while stack:
            node = stack.pop()
            visited += 1
            for callback in self._listeners.get(type(node), ()):
                callback(node)
            stack.extend(reversed(node.children))
        log.debug("pylsp_ruby_inlay_hints: dispatched %d nodes", visited)
