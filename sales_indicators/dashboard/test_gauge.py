"""
Tests for gauge and funnel geometry
"""

import pytest

from sales_indicators.dashboard import gauge


def test_objective_arc_splits_the_half_circle():
    assert gauge.objective_arc(75) == (75, 125)
    assert gauge.objective_arc(250) == (200, 0)
    assert gauge.objective_arc(-10) == (0, 200)


@pytest.mark.parametrize("percentage, color", [
    (0, "rgb(255, 0, 0)"),
    (50, "rgb(255, 165, 0)"),
    (100, "rgb(0, 255, 0)"),
    (200, "rgb(0, 100, 255)"),
])
def test_objective_color_ramp(percentage, color):
    assert gauge.objective_color(percentage) == color


def test_needle_position_is_clamped():
    assert gauge.needle_position(30) == 30
    assert gauge.needle_position(130) == 100
    assert gauge.needle_position(-1) == 0


def test_funnel_layout_is_centred():
    assert gauge.funnel_layout(4) == [(0, 100), (10, 80), (20, 60), (30, 40)]
    assert gauge.funnel_layout(5)[-1] == (30, 40)
    assert gauge.funnel_layout(0) == []
