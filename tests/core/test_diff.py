# tests/core/test_diff.py
import time

import pytest

from websketch_ir.api import diff, format_diff, make_capture, make_node, make_text
from websketch_ir.core.errors import ErrorCode, WebSketchError
from websketch_ir.core.services.diff_service import DiffOptions, DiffService
from websketch_ir.model import Role


def _page(*children):
    return make_capture(make_node("PAGE", [0, 0, 1, 1], children=children))


def _assert_no_changes(result):
    s = result.summary
    assert (s.added, s.removed, s.moved, s.resized) == (0, 0, 0, 0)


@pytest.mark.parametrize("fixture_name", [
    "minimal", "login_page", "deep_nesting", "repeated_siblings", "odd_bounds", "text_node",
])
def test_self_diff_is_empty(request, fixture_name):
    capture = request.getfixturevalue(fixture_name)
    result = diff(capture, capture)
    _assert_no_changes(result)
    assert result.identical
    assert result.summary.unchanged == capture.root.count()
    assert all(m.a.path == m.b.path for m in result.matched)


def test_diff_is_deterministic(login_page, deep_nesting):
    assert diff(login_page, deep_nesting) == diff(login_page, deep_nesting)
    assert format_diff(diff(login_page, deep_nesting)) == format_diff(diff(login_page, deep_nesting))


def test_added_and_removed():
    a = _page(make_node("NAV", [0, 0, 1, 0.1]))
    b = _page(make_node("NAV", [0, 0, 1, 0.1]), make_node("TOAST", [0.7, 0.8, 0.25, 0.1]))
    result = diff(a, b)
    assert [ref.role for ref in result.added] == [Role.TOAST]
    assert result.added[0].path == "root.children[1]"
    assert result.removed == []

    reverse = diff(b, a)
    assert [ref.role for ref in reverse.removed] == [Role.TOAST]
    assert reverse.added == []


def test_roles_never_match_across_types():
    a = _page(make_node("BUTTON", [0.1, 0.1, 0.2, 0.1]))
    b = _page(make_node("LINK", [0.1, 0.1, 0.2, 0.1]))
    result = diff(a, b)
    assert result.summary.added == 1
    assert result.summary.removed == 1
    assert len(result.matched) == 1  # only the roots


def test_moved():
    a = _page(make_node("CARD", [0.1, 0.1, 0.3, 0.3]))
    b = _page(make_node("CARD", [0.15, 0.1, 0.3, 0.3]))
    result = diff(a, b)
    card = result.matched[1]
    assert card.moved and not card.resized
    assert card.dx == pytest.approx(0.05)
    assert (result.summary.moved, result.summary.resized) == (1, 0)


def test_resized():
    a = _page(make_node("CARD", [0.1, 0.1, 0.3, 0.3]))
    b = _page(make_node("CARD", [0.1, 0.1, 0.4, 0.3]))
    card = diff(a, b).matched[1]
    assert card.resized and not card.moved
    assert card.dw == pytest.approx(0.1)


def test_moved_and_resized():
    a = _page(make_node("CARD", [0.1, 0.1, 0.3, 0.3]))
    b = _page(make_node("CARD", [0.2, 0.2, 0.35, 0.35]))
    result = diff(a, b)
    assert (result.summary.moved, result.summary.resized) == (1, 1)
    assert result.ranked_changes()[0].kind == "MOVED+RESIZED"


def test_changes_below_threshold_are_ignored():
    a = _page(make_node("CARD", [0.1, 0.1, 0.3, 0.3]))
    b = _page(make_node("CARD", [0.105, 0.1, 0.3, 0.305]))
    result = diff(a, b)
    _assert_no_changes(result)
    assert not result.identical


def test_custom_thresholds():
    a = _page(make_node("CARD", [0.1, 0.1, 0.3, 0.3]))
    b = _page(make_node("CARD", [0.105, 0.1, 0.3, 0.3]))
    result = diff(a, b, {"move_threshold": 0.001})
    assert result.summary.moved == 1


def test_far_move_still_matches():
    a = _page(make_node("BUTTON", [0.05, 0.05, 0.1, 0.05]))
    b = _page(make_node("BUTTON", [0.6, 0.05, 0.1, 0.05]))
    result = diff(a, b)
    assert result.summary.moved == 1
    assert result.summary.added == 0


def test_semantics_break_ties():
    """With identical geometry, the node sharing the semantic tag wins."""
    a = _page(
        make_node("INPUT", [0.1, 0.1, 0.3, 0.05], semantics="email"),
        make_node("INPUT", [0.1, 0.1, 0.3, 0.05], semantics="password"),
    )
    b = _page(
        make_node("INPUT", [0.1, 0.1, 0.3, 0.05], semantics="password"),
        make_node("INPUT", [0.1, 0.1, 0.3, 0.05], semantics="email"),
    )
    result = diff(a, b)
    pairs = {m.a.node.semantics: m.b.node.semantics for m in result.matched[1:]}
    assert pairs == {"email": "email", "password": "password"}
    assert result.summary.semantics_changed == 0


def test_equal_scores_tie_break_on_document_order():
    a = _page(make_node("ICON", [0.5, 0.5, 0.1, 0.1]), make_node("ICON", [0.5, 0.5, 0.1, 0.1]))
    b = _page(make_node("ICON", [0.5, 0.5, 0.1, 0.1]), make_node("ICON", [0.5, 0.5, 0.1, 0.1]))
    result = diff(a, b)
    assert [(m.a.path, m.b.path) for m in result.matched[1:]] == [
        ("root.children[0]", "root.children[0]"),
        ("root.children[1]", "root.children[1]"),
    ]


def test_reparented_node_found_by_fallback():
    button = make_node("BUTTON", [0.4, 0.4, 0.2, 0.1], interactive=True)
    a = _page(make_node("CARD", [0.05, 0.05, 0.3, 0.3]), button)
    b = _page(make_node("CARD", [0.05, 0.05, 0.3, 0.3]), make_node("SECTION", [0.3, 0.3, 0.5, 0.5], children=[button]))
    result = diff(a, b)
    match = next(m for m in result.matched if m.a.node.role is Role.BUTTON)
    assert match.a.path == "root.children[1]"
    assert match.b.path == "root.children[1].children[0]"
    assert not match.moved
    assert [ref.role for ref in result.added] == [Role.SECTION]


def test_property_changes_are_flagged():
    a = _page(make_node("BUTTON", [0.1, 0.1, 0.2, 0.1], text=make_text("Buy")))
    b = _page(make_node("BUTTON", [0.1, 0.1, 0.2, 0.1], interactive=True, semantics="buy", text=make_text("Buy now")))
    s = diff(a, b).summary
    assert (s.text_changed, s.interactive_changed, s.semantics_changed) == (1, 1, 1)
    assert (s.moved, s.resized) == (0, 0)


def test_options_validation():
    with pytest.raises(WebSketchError) as exc_info:
        diff(_page(), _page(), {"move_threshold": -1})
    assert exc_info.value.code is ErrorCode.INVALID_ARGS

    with pytest.raises(WebSketchError):
        diff(_page(), _page(), {"unknown_option": 1})

    with pytest.raises(WebSketchError):
        diff(_page(), _page(), "strict")


def test_non_capture_arguments():
    with pytest.raises(WebSketchError) as exc_info:
        diff(_page(), {"root": {}})
    assert exc_info.value.code is ErrorCode.INVALID_ARGS


def test_options_object_is_used_as_given():
    options = DiffOptions(move_threshold=0.5)
    assert DiffService(options).options is options


def test_similarity_scores():
    service = DiffService(DiffOptions())
    card = make_node("CARD", [0.1, 0.1, 0.3, 0.3])
    assert service.similarity(card, card) == pytest.approx(1.0)
    assert service.similarity(card, make_node("LIST", [0.1, 0.1, 0.3, 0.3])) is None
    tagged = make_node("CARD", [0.1, 0.1, 0.3, 0.3], semantics="pricing")
    assert service.similarity(tagged, tagged) == pytest.approx(1.2)


# --- Formatting ---

def test_format_identical(login_page):
    text = format_diff(diff(login_page, login_page))
    lines = text.split("\n")
    assert lines[0] == "Structural diff: 0 added, 0 removed, 0 moved, 0 resized"
    assert lines[-1] == "Captures are structurally identical."


def test_format_ranks_by_magnitude():
    a = _page(
        make_node("CARD", [0.1, 0.1, 0.2, 0.2]),
        make_node("IMAGE", [0.5, 0.5, 0.2, 0.2]),
    )
    b = _page(
        make_node("CARD", [0.12, 0.1, 0.2, 0.2]),
        make_node("IMAGE", [0.5, 0.5, 0.4, 0.3]),
        make_node("TOAST", [0.0, 0.9, 0.05, 0.05]),
    )
    text = format_diff(diff(a, b))
    lines = text.split("\n")
    assert lines[0] == "Structural diff: 1 added, 0 removed, 1 moved, 1 resized"
    assert lines[2] == "Top changes (3 of 3):"
    assert "RESIZED" in lines[3] and "IMAGE" in lines[3]
    assert "ADDED" in lines[4] and "TOAST" in lines[4]
    assert "MOVED" in lines[5] and "CARD" in lines[5]


def test_format_top_n():
    a = _page()
    b = _page(*[make_node("ICON", [0.1 * i, 0, 0.05, 0.05]) for i in range(5)])
    text = format_diff(diff(a, b), top_n=2)
    assert "Top changes (2 of 5):" in text
    assert text.count("ADDED") == 2


def test_format_rejects_bad_top_n(minimal):
    with pytest.raises(WebSketchError) as exc_info:
        format_diff(diff(minimal, minimal), top_n=-1)
    assert exc_info.value.code is ErrorCode.INVALID_ARGS


def test_format_property_only_changes():
    a = _page(make_node("BUTTON", [0.1, 0.1, 0.2, 0.1], text=make_text("Buy")))
    b = _page(make_node("BUTTON", [0.1, 0.1, 0.2, 0.1], text=make_text("Sell")))
    text = format_diff(diff(a, b))
    assert "Other changes: 1 text, 0 interactive, 0 semantics; 1 unchanged" in text
    assert text.endswith("No geometric changes.")


def _button_grid(count):
    buttons = []
    for i in range(count):
        x, y = (i % 60) / 60, (i // 60) / 60
        buttons.append(make_node("BUTTON", [x, y, 0.01, 0.01], interactive=True))
    return _page(*buttons)


def test_wide_sibling_self_diff_is_fast():
    capture = _button_grid(3000)
    started = time.perf_counter()
    result = diff(capture, capture)
    elapsed = time.perf_counter() - started
    assert result.identical
    assert len(result.matched) == 3001
    _assert_no_changes(result)
    assert elapsed < 5.0


def test_identical_siblings_pair_in_document_order_around_a_change():
    a = _page(
        make_node("LINK", [0.1, 0.1, 0.1, 0.05]),
        make_node("LINK", [0.1, 0.2, 0.1, 0.05]),
        make_node("LINK", [0.1, 0.3, 0.1, 0.05]),
    )
    b = _page(
        make_node("LINK", [0.1, 0.3, 0.1, 0.05]),
        make_node("LINK", [0.1, 0.1, 0.1, 0.05]),
        make_node("LINK", [0.15, 0.2, 0.1, 0.05]),
    )
    result = diff(a, b)
    pairs = [(m.a.path, m.b.path) for m in result.matched[1:]]
    assert pairs == [
        ("root.children[0]", "root.children[1]"),
        ("root.children[1]", "root.children[2]"),
        ("root.children[2]", "root.children[0]"),
    ]
    assert result.summary.moved == 1
    assert (result.summary.added, result.summary.removed) == (0, 0)
