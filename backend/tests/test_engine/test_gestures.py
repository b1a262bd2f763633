"""Tests for crossing-out and enclosure detection."""

from __future__ import annotations

import pytest

from inkdiagram.engine.gestures import detect_enclosure, detect_gestures, detect_x_mark, stroke_bounds
from tests.conftest import X_MARK_STROKES, element, make_stroke, square_loop


# ── X-mark ──


def test_x_mark_needs_two_strokes():
    assert detect_x_mark([]) is None
    assert detect_x_mark(X_MARK_STROKES[:1]) is None


def test_x_mark_center_is_mean_of_bbox_centers(x_mark_strokes):
    result = detect_x_mark(x_mark_strokes)
    assert result is not None
    assert result.is_x_mark
    assert result.center_x == pytest.approx(102.5)
    assert result.center_y == pytest.approx(97.5)
    assert result.target_element_id is None


def test_x_mark_only_looks_at_the_last_two_strokes(x_mark_strokes):
    earlier = make_stroke([0, 0, 500, 0], "earlier")
    assert detect_x_mark([earlier, *x_mark_strokes]) is not None
    assert detect_x_mark([*x_mark_strokes, earlier]) is None


def test_x_mark_resolves_target_with_margin(x_mark_strokes):
    positions = [element("far", 400, 400), element("near", 110, 110, w=20, h=20)]
    # (102.5, 97.5) sits within 20px of the "near" box
    result = detect_x_mark(x_mark_strokes, positions)
    assert result.target_element_id == "near"


def test_x_mark_target_uses_input_order(x_mark_strokes):
    positions = [element("first", 80, 80), element("second", 90, 90)]
    assert detect_x_mark(x_mark_strokes, positions).target_element_id == "first"


def test_x_mark_rejects_distant_strokes():
    strokes = [make_stroke([80, 80, 120, 120]), make_stroke([325, 75, 285, 115])]
    assert detect_x_mark(strokes) is None


def test_x_mark_rejects_mismatched_sizes():
    strokes = [make_stroke([80, 80, 120, 120]), make_stroke([200, 0, 0, 200])]
    assert detect_x_mark(strokes) is None


def test_x_mark_rejects_non_diagonal_strokes():
    strokes = [make_stroke([80, 100, 120, 100]), make_stroke([100, 80, 100, 120])]
    assert detect_x_mark(strokes) is None


def test_x_mark_ignores_degenerate_strokes():
    strokes = [make_stroke([80, 80, 120, 120]), make_stroke([100, 100])]
    assert detect_x_mark(strokes) is None


# ── Enclosure ──


def test_closed_loop_encloses_element_center():
    loop = square_loop(100, 100, 150)
    positions = [element("inside", 155, 155), element("outside", 400, 400)]

    result = detect_enclosure([loop], positions)

    assert result is not None
    assert result.is_enclosure
    assert result.stroke_index == 0
    assert result.enclosed_element_ids == ["inside"]
    assert result.bounds.width == 150
    assert result.bounds.center_x == 175


def test_open_stroke_never_encloses():
    # Endpoints 200px apart
    u_shape = make_stroke([100, 100, 100, 300, 300, 300, 300, 100])
    positions = [element("inside", 180, 180)]
    assert detect_enclosure([u_shape], positions) is None


def test_small_loop_is_ignored():
    loop = square_loop(100, 100, 60)
    assert detect_enclosure([loop], [element("a", 115, 115, w=20, h=20)]) is None


def test_loop_without_elements_inside_is_ignored():
    loop = square_loop(100, 100, 150)
    assert detect_enclosure([loop], [element("a", 400, 400)]) is None
    assert detect_enclosure([loop], None) is None


def test_first_matching_stroke_wins():
    first = square_loop(0, 0, 120, stroke_id="first")
    second = square_loop(100, 100, 150, stroke_id="second")
    positions = [element("a", 155, 155)]

    result = detect_enclosure([make_stroke([0, 0, 1, 1]), first, second], positions)

    assert result.stroke_index == 2


def test_detect_gestures_combines_both(x_mark_strokes):
    loop = square_loop(60, 60, 150)
    positions = [element("a", 80, 80)]

    hints = detect_gestures([loop, *x_mark_strokes], positions)

    assert hints.x_mark is not None
    assert hints.x_mark.target_element_id == "a"
    assert hints.enclosure.enclosed_element_ids == ["a"]
    assert not hints.empty


def test_stroke_bounds():
    b = stroke_bounds(make_stroke([10, 40, 30, 0]))
    assert (b.min_x, b.min_y, b.max_x, b.max_y) == (10, 0, 30, 40)
    assert (b.center_x, b.center_y) == (20, 20)
