import uuid
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, Dict, List, Literal, Optional, Union

# A parsed cell is a finite float or the raw text it came from.
CellValue = Union[float, str]
Row = Dict[str, CellValue]


def _new_dataset_id() -> str:
    return uuid.uuid4().hex


class Dataset(BaseModel):
    """
    A parsed upload: rows plus the header and numeric-column metadata derived from them.
    The id is a logical identity assigned at creation, never a content hash.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_dataset_id)
    filename: str = ""
    headers: List[str]
    numeric_columns: List[str]
    rows: List[Row]

    @property
    def is_empty(self) -> bool:
        return not self.rows


class Axis(str, Enum):
    X = "x"
    Y = "y"


class AxisSelection(BaseModel):
    """The pair of columns mapped to the chart axes. Empty string means unset."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    x_axis: str = Field("", alias="xAxis")
    y_axis: str = Field("", alias="yAxis")


class Recommendation(BaseModel):
    """One suggested axis pair. Column names are passed through as the service returned them."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    x_axis: str = Field(alias="xAxis")
    y_axis: str = Field(alias="yAxis")
    reason: str = ""


class InsightPayload(BaseModel):
    """The JSON object the insight service must return."""
    model_config = ConfigDict(frozen=True)

    recommendations: List[Recommendation]
    analysis: str


# --- Insight lifecycle ---

class InsightIdle(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["idle"] = "idle"


class InsightPending(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["fetching"] = "fetching"
    dataset_id: str


class InsightSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["ready"] = "ready"
    dataset_id: str
    recommendations: List[Recommendation]
    analysis: str


class InsightFailure(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["failed"] = "failed"
    dataset_id: str
    message: str
    kind: str  # exception class name, e.g. "ConfigError"


InsightResult = Annotated[
    Union[InsightIdle, InsightPending, InsightSuccess, InsightFailure],
    Field(discriminator="status"),
]


class DatasetStatus(str, Enum):
    EMPTY = "empty"
    PARSING = "parsing"
    READY = "ready"


class SessionState(BaseModel):
    """
    Everything the rendering collaborators read. Replaced wholesale on every
    transition, so a reader always sees one committed state.
    """
    model_config = ConfigDict(frozen=True)

    dataset_status: DatasetStatus = DatasetStatus.EMPTY
    dataset: Optional[Dataset] = None
    filename: Optional[str] = None
    upload_error: Optional[str] = None
    axes: AxisSelection = AxisSelection()
    insight: InsightResult = InsightIdle()
