"""
visualization.py
─────────────────────────────────────────────────────────────────────────────
Builds the telemetry line chart for the selected X/Y columns.

 - Rows whose X or Y value is not a finite number are skipped
 - Y range gets 15% padding (±1 for a flat series), floored at 0
 - Output is Plotly figure JSON, ready for st.plotly_chart or a web client
─────────────────────────────────────────────────────────────────────────────
"""

import math
import plotly.graph_objects as go
from typing import Any, List, Optional, Tuple
from telemetry_viz.core.ingestion import parse_leading_number
from telemetry_viz.models import AxisSelection, Dataset, Row
from telemetry_viz.utils.exceptions import VisualizationError
from telemetry_viz.utils.logger import get_logger

logger = get_logger(__name__)

# ── colour palette (dark-theme friendly) ─────────────────────────────────────
CLR_LINE     = "#00E5FF"   # cyan   – series line
CLR_MARKER   = "#FF7A1A"   # orange – point outline
CLR_AXIS     = "#B36BFF"   # purple – axis titles
CLR_BG       = "rgba(0,0,0,0)"
FONT_COLOR   = "#FFFFFF"

LAYOUT_BASE = dict(
    paper_bgcolor=CLR_BG,
    plot_bgcolor ="rgba(14,17,23,1)",
    font         =dict(color=FONT_COLOR, size=13, family="Inter, monospace"),
    margin       =dict(l=60, r=40, t=70, b=80),
    hovermode    ="x unified",
)

Y_PADDING_RATIO = 0.15
PREVIEW_ROWS = 10


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return parse_leading_number(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def extract_points(rows: List[Row], x_axis: str, y_axis: str) -> List[Tuple[float, float]]:
    """(x, y) pairs for every row where both columns hold finite numbers."""
    points = []
    for row in rows:
        x = _as_number(row.get(x_axis))
        y = _as_number(row.get(y_axis))
        if x is None or y is None:
            continue
        points.append((x, y))
    return points


def y_axis_range(values: List[float]) -> Tuple[float, float]:
    if not values:
        return 0.0, 1.0

    low, high = min(values), max(values)
    spread = high - low
    padding = 1.0 if spread == 0 else spread * Y_PADDING_RATIO

    low = low - padding if low - padding > 0 else 0.0
    return low, high + padding


def build_line_chart(dataset: Dataset, axes: AxisSelection) -> str:
    """
    Plot `axes.y_axis` against `axes.x_axis` as a line chart.

    Raises:
        VisualizationError: an axis is unset or no row has numbers in both columns.
    """
    x_axis, y_axis = axes.x_axis, axes.y_axis
    if not x_axis or not y_axis:
        raise VisualizationError("Select both an X-axis and a Y-axis column to draw the chart.")

    points = extract_points(dataset.rows, x_axis, y_axis)
    if not points:
        raise VisualizationError(
            f"No valid numerical data points found for X: '{x_axis}' and Y: '{y_axis}'. "
            "Please verify that both columns exist and contain numerical values."
        )

    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    y_low, y_high = y_axis_range(ys)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=xs,
        y=ys,
        mode="lines+markers",
        name=y_axis.upper(),
        line=dict(color=CLR_LINE, width=3, shape="spline", smoothing=0.4),
        marker=dict(color=CLR_LINE, size=6, line=dict(width=2, color=CLR_MARKER)),
        fill="tozeroy",
        fillcolor="rgba(0,229,255,0.12)",
        hovertemplate=f"X ({x_axis.upper()}): %{{x:,}}<br>Y ({y_axis.upper()}): %{{y:,}}<extra></extra>",
    ))
    fig.update_layout(
        **LAYOUT_BASE,
        title=dict(text=f"{y_axis.upper()} vs {x_axis.upper()}", font=dict(size=18, color=CLR_MARKER)),
        xaxis=dict(
            type="linear",
            title=dict(text=f"X-Axis: {x_axis.upper()}", font=dict(color=CLR_AXIS)),
            gridcolor="#2a2f3a",
            zerolinecolor="#2a2f3a",
        ),
        yaxis=dict(
            range=[y_low, y_high],
            title=dict(text=f"Y-Axis: {y_axis.upper()}", font=dict(color=CLR_AXIS)),
            gridcolor="#2a2f3a",
            zerolinecolor="#2a2f3a",
        ),
    )

    logger.info(f"Chart built: {y_axis} vs {x_axis} ({len(points)} of {len(dataset.rows)} rows plotted)")
    return fig.to_json()


def preview_rows(dataset: Dataset, limit: int = PREVIEW_ROWS) -> List[Row]:
    """First rows of the dataset, with every header present (missing cells as None)."""
    return [
        {header: row.get(header) for header in dataset.headers}
        for row in dataset.rows[:limit]
    ]


def axis_options(dataset: Dataset, current: str) -> List[str]:
    """Choices for an axis picker: blank, the numeric columns, then the current
    selection if an accepted recommendation named some other column."""
    options = [""] + dataset.numeric_columns
    if current not in options:
        options.append(current)
    return options
