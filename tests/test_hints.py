"""Tests for the inlay-hint collector, dispatcher and request config."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make sure the package is importable from the repo root
sys.path.insert(0, str(Path(__file__).parent.parent))

from pylsp_ruby_inlay_hints.config import RequestConfig
from pylsp_ruby_inlay_hints.dispatcher import Dispatcher
from pylsp_ruby_inlay_hints.hints import (
    Hint,
    InlayHints,
    RequestedRange,
    visible,
)
from pylsp_ruby_inlay_hints.nodes import (
    ConstantReference,
    GenericNode,
    ImplicitValueNode,
    LocalVariableReference,
    MethodCall,
    OtherExpression,
    RescueClauseNode,
    SourceSpan,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _span(line, column, end_line=None, end_column=None):
    return SourceSpan(
        start_line=line,
        start_column=column,
        end_line=end_line if end_line is not None else line,
        end_column=end_column if end_column is not None else column + 1,
    )


def _range(start_line=0, end_line=100):
    return RequestedRange(start_line, 0, end_line, 0)


def _config(**flags):
    return RequestConfig(flags)


def _program(*children):
    return GenericNode(kind="program", span=_span(1, 0, 100, 0), children=tuple(children))


def _bare_rescue(line=2, column=0):
    return RescueClauseNode(span=_span(line, column))


def _implicit(value_cls, name, line=3, column=2):
    span = _span(line, column, end_column=column + len(name))
    return ImplicitValueNode(span=span, value=value_cls(name, span))


def _collect(tree, range_=None, config=None):
    dispatcher = Dispatcher()
    collector = InlayHints(
        _range() if range_ is None else range_,
        config if config is not None else _config(enableAll=True),
        dispatcher,
    )
    dispatcher.dispatch(tree)
    return collector.result()


# ---------------------------------------------------------------------------
# Bare rescue
# ---------------------------------------------------------------------------

class TestRescueHints:
    def test_bare_rescue_in_range(self):
        hints = _collect(_program(_bare_rescue(line=2, column=0)),
                         config=_config(implicitRescue=True))
        assert hints == (
            Hint(
                line=1,
                character=6,
                label="StandardError",
                padding_left=True,
                tooltip="StandardError is implied in a bare rescue",
            ),
        )

    def test_position_after_keyword_for_indented_rescue(self):
        hints = _collect(_program(_bare_rescue(line=10, column=4)))
        assert (hints[0].line, hints[0].character) == (9, 10)

    @pytest.mark.parametrize("enabled", [True, False])
    def test_explicit_exception_type_never_hinted(self, enabled):
        node = RescueClauseNode(span=_span(2, 0), exceptions=("ArgumentError",))
        hints = _collect(_program(node), config=_config(implicitRescue=enabled))
        assert hints == ()

    def test_disabled_feature(self):
        hints = _collect(_program(_bare_rescue()),
                         config=_config(implicitRescue=False, implicitHashValue=True))
        assert hints == ()

    def test_outside_range(self):
        hints = _collect(_program(_bare_rescue(line=50)), range_=_range(0, 10))
        assert hints == ()


# ---------------------------------------------------------------------------
# Implicit hash values
# ---------------------------------------------------------------------------

class TestImplicitValueHints:
    def test_local_variable(self):
        hints = _collect(_program(_implicit(LocalVariableReference, "var", line=3, column=2)),
                         config=_config(implicitHashValue=True))
        assert len(hints) == 1
        hint = hints[0]
        assert hint.line == 2
        # start column + len("var") + 1 for the ':'
        assert hint.character == 6
        assert hint.label == "var"
        assert hint.padding_left is True
        assert hint.tooltip == "This is a local variable: var"

    def test_method_call(self):
        hints = _collect(_program(_implicit(MethodCall, "user_name", line=1, column=4)))
        assert hints[0].label == "user_name"
        assert hints[0].character == 4 + len("user_name") + 1
        assert hints[0].tooltip == "This is a method call. Method name: user_name"

    def test_constant(self):
        hints = _collect(_program(_implicit(ConstantReference, "Foo")))
        assert hints[0].label == "Foo"
        assert hints[0].tooltip == "This is a constant: Foo"

    def test_unrecognised_kind_emits_empty_hint(self):
        span = _span(5, 8)
        node = ImplicitValueNode(span=span, value=OtherExpression("it_local", span))
        hints = _collect(_program(node))
        assert hints == (Hint(line=4, character=9, label="", padding_left=True, tooltip=""),)

    def test_disabled_feature(self):
        hints = _collect(_program(_implicit(LocalVariableReference, "var")),
                         config=_config(implicitRescue=True, implicitHashValue=False))
        assert hints == ()

    @pytest.mark.parametrize("flags", [{}, {"implicitHashValue": True}, {"enableAll": True}])
    def test_outside_range_regardless_of_flags(self, flags):
        hints = _collect(_program(_implicit(MethodCall, "foo", line=40)),
                         range_=_range(0, 10), config=_config(**flags))
        assert hints == ()


# ---------------------------------------------------------------------------
# Collector behaviour
# ---------------------------------------------------------------------------

class TestInlayHintsCollector:
    def test_hints_follow_document_order(self):
        nested = _implicit(MethodCall, "inner", line=3, column=6)
        rescue = RescueClauseNode(span=_span(2, 0, 4, 0), children=(GenericNode("then", _span(3, 2), (nested,)),))
        tree = _program(
            _implicit(LocalVariableReference, "first", line=1, column=2),
            rescue,
            _implicit(ConstantReference, "Last", line=6, column=2),
        )
        labels = [hint.label for hint in _collect(tree)]
        assert labels == ["first", "StandardError", "inner", "Last"]

    def test_reordering_source_reorders_hints(self):
        a = _implicit(MethodCall, "a", line=1)
        b = _implicit(MethodCall, "b", line=2)
        assert [h.label for h in _collect(_program(a, b))] == ["a", "b"]
        assert [h.label for h in _collect(_program(b, a))] == ["b", "a"]

    def test_result_is_idempotent(self):
        dispatcher = Dispatcher()
        collector = InlayHints(_range(), _config(enableAll=True), dispatcher)
        dispatcher.dispatch(_program(_bare_rescue()))
        first = collector.result()
        assert collector.result() == first
        assert isinstance(first, tuple)

    def test_repeated_runs_are_identical(self):
        tree = _program(_bare_rescue(), _implicit(LocalVariableReference, "var"))
        assert _collect(tree) == _collect(tree)

    def test_registers_only_two_handlers(self):
        dispatcher = Dispatcher()
        InlayHints(_range(), _config(), dispatcher)
        assert set(dispatcher._listeners) == {RescueClauseNode, ImplicitValueNode}

    def test_none_range_means_whole_document(self):
        dispatcher = Dispatcher()
        collector = InlayHints(None, _config(enableAll=True), dispatcher)
        dispatcher.dispatch(_program(_bare_rescue(line=10_000)))
        assert len(collector.result()) == 1

    def test_to_hint_shape(self):
        hint = Hint(line=1, character=6, label="StandardError", tooltip="tip")
        assert hint.to_hint() == {
            "position": {"line": 1, "character": 6},
            "label": "StandardError",
            "paddingLeft": True,
            "tooltip": "tip",
        }


# ---------------------------------------------------------------------------
# visible / RequestedRange
# ---------------------------------------------------------------------------

class TestVisibility:
    def test_inside(self):
        assert visible(_span(3, 0), _range(0, 5))

    def test_boundaries_are_inclusive(self):
        assert visible(_span(1, 0), _range(0, 0))
        assert visible(_span(6, 0), _range(5, 5))

    def test_before_range(self):
        assert not visible(_span(2, 0), _range(5, 10))

    def test_node_ending_after_range(self):
        assert not visible(_span(5, 0, end_line=20), _range(0, 10))

    def test_none_range(self):
        assert visible(_span(123456, 0), None)

    def test_from_lsp(self):
        rng = RequestedRange.from_lsp({
            "start": {"line": 3, "character": 1},
            "end": {"line": 9, "character": 4},
        })
        assert rng == RequestedRange(3, 1, 9, 4)

    def test_from_lsp_missing_fields(self):
        rng = RequestedRange.from_lsp({"start": {}})
        assert rng.start_line == 0
        assert rng.end_line >= 10**9

    def test_from_lsp_not_a_dict(self):
        assert RequestedRange.from_lsp(None) is None

    @pytest.mark.parametrize("range_", [
        {"start": 5},
        {"start": {"line": None}, "end": {"line": "9"}},
        {"start": {"line": True}, "end": []},
    ])
    def test_from_lsp_malformed_positions_cover_document(self, range_):
        rng = RequestedRange.from_lsp(range_)
        assert rng.start_line == 0
        assert rng.end_line >= 10**9
        assert visible(_span(500, 0), rng)


# ---------------------------------------------------------------------------
# RequestConfig
# ---------------------------------------------------------------------------

class TestRequestConfig:
    def test_flag_on(self):
        assert RequestConfig({"implicitRescue": True}).enabled("implicitRescue")

    def test_missing_flag_is_off(self):
        assert not RequestConfig({}).enabled("implicitHashValue")

    def test_none_configuration(self):
        assert not RequestConfig(None).enabled("implicitRescue")

    def test_enable_all_overrides(self):
        cfg = RequestConfig({"enableAll": True, "implicitRescue": False})
        assert cfg.enabled("implicitRescue")
        assert cfg.enabled("implicitHashValue")


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class TestDispatcher:
    def test_preorder_document_order(self):
        seen = []
        leaf_a = GenericNode("a", _span(1, 0))
        leaf_b = GenericNode("b", _span(2, 0))
        inner = GenericNode("inner", _span(1, 0), (leaf_a,))
        root = GenericNode("root", _span(1, 0), (inner, leaf_b))

        dispatcher = Dispatcher()
        dispatcher.register(GenericNode, lambda node: seen.append(node.kind))
        dispatcher.dispatch(root)
        assert seen == ["root", "inner", "a", "b"]

    def test_callbacks_fire_in_registration_order(self):
        seen = []
        dispatcher = Dispatcher()
        dispatcher.register(RescueClauseNode, lambda node: seen.append("first"))
        dispatcher.register(RescueClauseNode, lambda node: seen.append("second"))
        dispatcher.dispatch(_program(_bare_rescue()))
        assert seen == ["first", "second"]

    def test_visits_implicit_value_inner_expression(self):
        seen = []
        dispatcher = Dispatcher()
        dispatcher.register(LocalVariableReference, seen.append)
        dispatcher.dispatch(_program(_implicit(LocalVariableReference, "var")))
        assert [node.name for node in seen] == ["var"]

    def test_deep_tree_does_not_recurse(self):
        node = _bare_rescue()
        for _ in range(5000):
            node = GenericNode("begin", _span(1, 0), (node,))
        seen = []
        dispatcher = Dispatcher()
        dispatcher.register(RescueClauseNode, seen.append)
        dispatcher.dispatch(node)
        assert len(seen) == 1
