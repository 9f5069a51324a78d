"""
Gauge and funnel geometry
"""

from typing import List, Tuple

OBJECTIVE_GAUGE_MAX = 200.0
CONVERSION_GAUGE_MAX = 100.0

# Bar widths (percent of the chart) from the top of the funnel down
FUNNEL_WIDTHS = [100, 80, 60, 40]


def objective_arc(percentage: float) -> Tuple[float, float]:
    """Filled and remaining parts of the half-circle objective gauge"""
    filled = min(OBJECTIVE_GAUGE_MAX, max(0.0, percentage))
    return filled, OBJECTIVE_GAUGE_MAX - filled


def objective_color(percentage: float) -> str:
    """Red to orange up to 50%, orange to green up to 100%, green to blue up to 200%"""
    percentage = min(OBJECTIVE_GAUGE_MAX, max(0.0, percentage))

    if percentage <= 50:
        green = round(percentage / 50 * 165)
        return f"rgb(255, {green}, 0)"

    if percentage <= 100:
        red = round(255 - (percentage - 50) / 50 * 255)
        green = round(165 + (percentage - 50) / 50 * 90)
        return f"rgb({red}, {green}, 0)"

    factor = (percentage - 100) / 100
    green = round(max(0.0, 255 - factor * 155))
    blue = round(min(255.0, factor * 255))
    return f"rgb(0, {green}, {blue})"


def needle_position(rate: float) -> float:
    # left offset (percent of the gauge width) of the conversion needle
    return min(CONVERSION_GAUGE_MAX, max(0.0, rate))


def funnel_layout(bucket_count: int) -> List[Tuple[float, float]]:
    """(left padding, width) of each funnel bar, centred"""
    layout = []
    for index in range(bucket_count):
        width = FUNNEL_WIDTHS[min(index, len(FUNNEL_WIDTHS) - 1)]
        layout.append(((100 - width) / 2, width))
    return layout
