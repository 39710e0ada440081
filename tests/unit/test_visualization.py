import json
import pytest
from telemetry_viz.core.ingestion import parse_csv
from telemetry_viz.core.visualization import axis_options, build_line_chart, extract_points, preview_rows, y_axis_range
from telemetry_viz.models import AxisSelection
from telemetry_viz.utils.exceptions import VisualizationError

# --- Tests for point extraction ---

def test_points_skip_rows_without_numbers():
    rows = [
        {"t": 1.0, "v": 10.0},
        {"t": 2.0, "v": ""},
        {"t": "n/a", "v": 12.0},
        {"t": 4.0},
        {"t": 5.0, "v": 15.0},
    ]
    assert extract_points(rows, "t", "v") == [(1.0, 10.0), (5.0, 15.0)]

def test_points_read_leading_numbers_from_text():
    rows = [{"t": "1s", "v": "12.5V"}, {"t": "2s", "v": "V13"}]
    assert extract_points(rows, "t", "v") == [(1.0, 12.5)]

# --- Tests for the Y range ---

def test_y_range_adds_padding():
    assert y_axis_range([10.0, 20.0]) == pytest.approx((8.5, 21.5))

def test_y_range_for_flat_series():
    assert y_axis_range([5.0, 5.0]) == (4.0, 6.0)
    assert y_axis_range([0.5, 0.5]) == (0.0, 1.5)

def test_y_range_is_floored_at_zero():
    assert y_axis_range([-5.0, 5.0]) == pytest.approx((0.0, 6.5))

# --- Tests for chart output ---

def test_chart_json_has_title_and_points(telemetry_csv):
    dataset = parse_csv(telemetry_csv, "run.csv")
    chart = json.loads(build_line_chart(dataset, AxisSelection(x_axis="TimeStamp", y_axis="D1_Commanded_Torque")))
    assert chart["layout"]["title"]["text"] == "D1_COMMANDED_TORQUE vs TIMESTAMP"
    assert len(chart["data"][0]["y"]) == 3

def test_chart_without_numeric_points_raises(telemetry_csv):
    dataset = parse_csv(telemetry_csv, "run.csv")
    with pytest.raises(VisualizationError):
        build_line_chart(dataset, AxisSelection(x_axis="TimeStamp", y_axis="Not_A_Column"))

def test_chart_requires_both_axes(telemetry_csv):
    dataset = parse_csv(telemetry_csv, "run.csv")
    with pytest.raises(VisualizationError):
        build_line_chart(dataset, AxisSelection(x_axis="TimeStamp"))

def test_preview_fills_missing_cells():
    dataset = parse_csv(b"A,B\n1,2\n3\n", "short.csv")
    assert preview_rows(dataset) == [{"A": 1.0, "B": 2.0}, {"A": 3.0, "B": None}]

# --- Tests for axis options ---

def test_axis_options_list_numeric_columns(telemetry_csv):
    dataset = parse_csv(telemetry_csv, "run.csv")
    assert axis_options(dataset, "TimeStamp") == ["", "TimeStamp", "D1_Commanded_Torque", "D1_DC_Bus_Voltage"]

def test_axis_options_keep_an_accepted_unknown_column(telemetry_csv):
    """The picker still shows the current pick, and the numeric columns stay selectable."""
    dataset = parse_csv(telemetry_csv, "run.csv")
    options = axis_options(dataset, "Not_A_Column")
    assert options[-1] == "Not_A_Column"
    assert "D1_Commanded_Torque" in options
