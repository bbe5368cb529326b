"""Inlay hints for implicit Ruby syntax.

Two patterns are annotated:

  1. A bare ``rescue`` implicitly rescues StandardError:

         begin
           risky
         rescue            # hint "StandardError" right after the keyword
           recover
         end

  2. A hash or keyword-argument entry written as ``key:`` takes its value from
     the identifier of the same name:

         var = "foo"
         { var:, a: "hello" }   # hint "var" right after "var:"

Each pattern has its own feature toggle (see config.py). The collector only
sees nodes inside the requested range, and emits hints in document order.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from . import ruby_parser
from .config import IMPLICIT_HASH_VALUE, IMPLICIT_RESCUE, RequestConfig
from .dispatcher import Dispatcher
from .nodes import (
    ConstantReference,
    ImplicitValueNode,
    InnerExpression,
    LocalVariableReference,
    MethodCall,
    RescueClauseNode,
    SourceSpan,
)

log = logging.getLogger(__name__)

RESCUE_STRING_LENGTH = len("rescue")

IMPLICIT_RESCUE_LABEL = "StandardError"
IMPLICIT_RESCUE_TOOLTIP = "StandardError is implied in a bare rescue"

# End line used when the client's range has no usable one
_LAST_LINE = 10**9


@dataclass(frozen=True)
class RequestedRange:
    """Line/column window of a textDocument/inlayHint request (0-based)."""
    start_line: int
    start_character: int
    end_line: int
    end_character: int

    @classmethod
    def from_lsp(cls, range_: Any) -> Optional["RequestedRange"]:
        """Build from an LSP Range dict; None means the whole document."""
        if not isinstance(range_, dict):
            return None
        start = range_.get("start")
        end = range_.get("end")
        return cls(
            start_line=_position_field(start, "line", 0),
            start_character=_position_field(start, "character", 0),
            end_line=_position_field(end, "line", _LAST_LINE),
            end_character=_position_field(end, "character", 0),
        )


def _position_field(position: Any, key: str, default: int) -> int:
    """Read one integer field of an LSP Position, *default* if absent or malformed."""
    if not isinstance(position, dict):
        return default
    value = position.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        return default
    return value


def visible(span: SourceSpan, range_: Optional[RequestedRange]) -> bool:
    """True if the whole line extent of *span* lies inside *range_*."""
    if range_ is None:
        return True
    lines = range(range_.start_line, range_.end_line + 1)
    return (span.start_line - 1) in lines and (span.end_line - 1) in lines


@dataclass(frozen=True)
class Hint:
    """One inlay hint; ``line`` and ``character`` are 0-based."""
    line: int
    character: int
    label: str
    padding_left: bool = True
    tooltip: str = ""

    def to_hint(self) -> Dict[str, Any]:
        """Build the LSP InlayHint dict."""
        return {
            "position": {
                "line": self.line,
                "character": self.character,
            },
            "label": self.label,
            "paddingLeft": self.padding_left,
            "tooltip": self.tooltip,
        }


def _describe_implicit_value(value: InnerExpression) -> Tuple[str, str]:
    """Return (label, tooltip) for the expression behind a ``key:`` entry."""
    if isinstance(value, MethodCall):
        return value.name, f"This is a method call. Method name: {value.name}"
    if isinstance(value, ConstantReference):
        return value.name, f"This is a constant: {value.name}"
    if isinstance(value, LocalVariableReference):
        return value.name, f"This is a local variable: {value.name}"
    # NOTE: other kinds still get a hint, with an empty label and tooltip
    return "", ""


class InlayHints:
    """Collects the hints of one request.

    Registers its two handlers on the given dispatcher; after dispatching,
    ``result()`` holds one hint per qualifying node, in traversal order.
    """

    def __init__(
        self,
        range_: Optional[RequestedRange],
        config: RequestConfig,
        dispatcher: Dispatcher,
    ) -> None:
        self._hints: List[Hint] = []
        self._range = range_
        self._config = config

        dispatcher.register(RescueClauseNode, self.on_rescue_node_enter)
        dispatcher.register(ImplicitValueNode, self.on_implicit_node_enter)

    def result(self) -> Tuple[Hint, ...]:
        return tuple(self._hints)

    def on_rescue_node_enter(self, node: RescueClauseNode) -> None:
        if not self._config.enabled(IMPLICIT_RESCUE):
            return
        if node.exceptions:
            return
        if not visible(node.span, self._range):
            return

        span = node.span
        self._hints.append(Hint(
            line=span.start_line - 1,
            character=span.start_column + RESCUE_STRING_LENGTH,
            label=IMPLICIT_RESCUE_LABEL,
            padding_left=True,
            tooltip=IMPLICIT_RESCUE_TOOLTIP,
        ))

    def on_implicit_node_enter(self, node: ImplicitValueNode) -> None:
        if not self._config.enabled(IMPLICIT_HASH_VALUE):
            return
        if not visible(node.span, self._range):
            return

        name, tooltip = _describe_implicit_value(node.value)
        span = node.span
        # +1 skips the ':' between the key and the omitted value
        self._hints.append(Hint(
            line=span.start_line - 1,
            character=span.start_column + len(name) + 1,
            label=name,
            padding_left=True,
            tooltip=tooltip,
        ))


def compute_inlay_hints(
    source: str,
    range_: Optional[RequestedRange],
    config: RequestConfig,
) -> List[Dict[str, Any]]:
    """Parse *source* as Ruby and return its inlay hints as LSP dicts."""
    tree = ruby_parser.parse(source)
    dispatcher = Dispatcher()
    collector = InlayHints(range_, config, dispatcher)
    dispatcher.dispatch(tree)

    hints = collector.result()
    log.debug("pylsp_ruby_inlay_hints: %d hints in range %s", len(hints), range_)
    return [hint.to_hint() for hint in hints]
