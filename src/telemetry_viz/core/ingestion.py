import csv
import io
import math
import re
import pandas as pd
from typing import List, Optional
from telemetry_viz.utils.logger import get_logger
from telemetry_viz.utils.exceptions import ParseError
from telemetry_viz.models import CellValue, Dataset, Row
from telemetry_viz.config import settings

logger = get_logger(__name__)

CANDIDATE_DELIMITERS = ",;\t|"
SNIFF_BYTES = 4096
LEADING_NUMBER = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_leading_number(text: str) -> Optional[float]:
    """
    Reads the number at the start of the text, ignoring leading whitespace and
    any trailing units ("12.5V" -> 12.5, "35%" -> 35.0). None when there is no
    leading number or it is not finite.
    """
    match = LEADING_NUMBER.match(text.lstrip())
    if match is None:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def coerce_cell(value: str) -> CellValue:
    """
    Returns the leading number of a non-empty cell as a float, otherwise the
    original text (empty string included).
    """
    if value == "":
        return value
    number = parse_leading_number(value)
    return value if number is None else number


def detect_numeric_columns(headers: List[str], rows: List[Row]) -> List[str]:
    """A column is numeric if at least one row holds a number in it."""
    return [
        header for header in headers
        if any(isinstance(row.get(header), float) for row in rows)
    ]


def _sniff_delimiter(text: str) -> str:
    try:
        return csv.Sniffer().sniff(text[:SNIFF_BYTES], delimiters=CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return ','


def parse_csv(file_content: bytes, filename: str = "") -> Dataset:
    """
    Parses raw CSV bytes into a Dataset.

    The first line is the header row and fixes the column universe. Blank lines are
    skipped, short rows leave their trailing columns absent and extra trailing
    fields are dropped. Cells are coerced one by one, so a column may mix numbers
    and text.

    Raises:
        ParseError: the bytes are not decodable text or have no header row.
    """
    logger.info(f"Starting ingestion for file: {filename or '<unnamed>'}")

    size_mb = len(file_content) / (1024 * 1024)
    if size_mb > settings.MAX_UPLOAD_SIZE_MB:
        logger.warning(
            f"File is {size_mb:.1f}MB, above the advisory {settings.MAX_UPLOAD_SIZE_MB}MB limit. Parsing anyway."
        )

    try:
        text = file_content.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise ParseError(f"Failed to parse CSV: file is not UTF-8 text ({e.reason}).") from e

    delimiter = _sniff_delimiter(text)
    logger.info(f"Detected delimiter: '{delimiter}'")

    read_options = dict(
        sep=delimiter,
        dtype=object,
        na_filter=False,
        skip_blank_lines=True,
        index_col=False,
        engine='python',
    )

    try:
        columns = list(pd.read_csv(io.StringIO(text), nrows=0, **read_options).columns)
        width = len(columns)
        df = pd.read_csv(
            io.StringIO(text),
            on_bad_lines=lambda fields: fields[:width],
            **read_options,
        )
    except pd.errors.EmptyDataError as e:
        raise ParseError("Failed to parse CSV: the file has no header row.") from e
    except (pd.errors.ParserError, csv.Error, ValueError) as e:
        logger.error(f"Error during ingestion: {str(e)}")
        raise ParseError(f"Failed to parse CSV: {str(e)}") from e

    headers = [str(column) for column in df.columns]
    rows: List[Row] = []
    for record in df.to_dict(orient="records"):
        row: Row = {}
        for header, value in record.items():
            # Missing trailing fields come back as None/NaN rather than text
            if isinstance(value, str):
                row[header] = coerce_cell(value)
        rows.append(row)

    numeric_columns = detect_numeric_columns(headers, rows)
    logger.info(
        f"Ingestion successful. Rows: {len(rows)}, columns: {len(headers)}, numeric: {len(numeric_columns)}"
    )

    return Dataset(
        filename=filename,
        headers=headers,
        numeric_columns=numeric_columns,
        rows=rows,
    )
