"""
session.py
─────────────────────────────────────────────────────────────────────────────
Owns the upload → dataset → axes → insights state for one visualizer session.

Two independent lifecycles:
  dataset : empty → parsing → ready
  insight : idle → fetching → ready | failed   (reset for every new dataset)

State lives in one frozen SessionState that is replaced on every transition.
After each commit `_reconcile()` decides whether an insight fetch is owed for
the current dataset, so the fetch follows a successful parse exactly once.
Results for a dataset that is no longer current are dropped on arrival.
─────────────────────────────────────────────────────────────────────────────
"""

import asyncio
from typing import Callable, Optional, Sequence, Union

from telemetry_viz.core.ingestion import parse_csv
from telemetry_viz.core.insights import InsightClient
from telemetry_viz.models import (
    Axis,
    AxisSelection,
    Dataset,
    DatasetStatus,
    InsightFailure,
    InsightIdle,
    InsightPending,
    InsightSuccess,
    SessionState,
)
from telemetry_viz.utils.exceptions import AppException, InvalidSelectionError, ParseError
from telemetry_viz.utils.logger import get_logger

logger = get_logger(__name__)

PREFERRED_X_COLUMNS = ("TimeStamp", "adjusted_time_ms")
PREFERRED_Y_COLUMNS = ("D1_Commanded_Torque",)


def default_axis_selection(numeric_columns: Sequence[str]) -> AxisSelection:
    """
    X: a known time column if numeric, else the first numeric column.
    Y: a known torque column if numeric, else the second numeric column.
    """
    x_axis = next((c for c in PREFERRED_X_COLUMNS if c in numeric_columns), "")
    if not x_axis and numeric_columns:
        x_axis = numeric_columns[0]

    y_axis = next((c for c in PREFERRED_Y_COLUMNS if c in numeric_columns), "")
    if not y_axis and len(numeric_columns) > 1:
        y_axis = numeric_columns[1]

    return AxisSelection(x_axis=x_axis, y_axis=y_axis)


class SessionController:
    """
    The single writer of session state.

    Args:
        insight_client       : Anything with `async generate_insights(dataset)`.
        parser               : Callable turning (bytes, filename) into a Dataset.
        cancel_stale_fetches : Cancel an in-flight fetch when a new upload starts.
                               Stale results are discarded either way.
    """

    def __init__(
        self,
        insight_client: Optional[InsightClient] = None,
        parser: Callable[[bytes, str], Dataset] = parse_csv,
        cancel_stale_fetches: bool = True,
    ):
        self._insight_client = insight_client or InsightClient()
        self._parser = parser
        self._cancel_stale_fetches = cancel_stale_fetches

        self._state = SessionState()
        self._upload_seq = 0
        self._fetched_dataset_id: Optional[str] = None
        self._insight_task: Optional[asyncio.Task] = None
        # Strong references so superseded fetches are not garbage collected mid-flight
        self._background_tasks: set = set()

    # ── reads ─────────────────────────────────────────────────────────────────
    @property
    def state(self) -> SessionState:
        return self._state

    def snapshot(self) -> SessionState:
        return self._state

    def is_current(self, dataset_id: str) -> bool:
        dataset = self._state.dataset
        return dataset is not None and dataset.id == dataset_id

    # ── transitions ───────────────────────────────────────────────────────────
    def _commit(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        self._reconcile()

    def _reconcile(self) -> None:
        state = self._state
        if state.dataset_status is not DatasetStatus.READY or state.dataset is None:
            return
        dataset = state.dataset
        if dataset.is_empty or self._fetched_dataset_id == dataset.id:
            return

        self._fetched_dataset_id = dataset.id
        self._commit(insight=InsightPending(dataset_id=dataset.id))
        task = asyncio.create_task(self._fetch_insights(dataset))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        self._insight_task = task

    async def upload(self, file_content: bytes, filename: str = "") -> Optional[Dataset]:
        """
        Replaces the current dataset with the parsed upload.

        Returns the new Dataset, or None if a newer upload superseded this one
        while it was parsing.

        Raises:
            ParseError: the file could not be parsed; the session is left empty.
        """
        self._upload_seq += 1
        seq = self._upload_seq

        if self._cancel_stale_fetches and self._insight_task is not None and not self._insight_task.done():
            logger.info("Cancelling insight fetch for superseded dataset")
            self._insight_task.cancel()
        self._insight_task = None

        self._commit(
            dataset_status=DatasetStatus.PARSING,
            dataset=None,
            filename=filename,
            upload_error=None,
            axes=AxisSelection(),
            insight=InsightIdle(),
        )

        try:
            dataset = await asyncio.to_thread(self._parser, file_content, filename)
        except Exception as e:
            error = e if isinstance(e, ParseError) else ParseError(f"Failed to parse CSV: {e}")
            if seq == self._upload_seq:
                logger.error(f"Upload of '{filename}' failed: {error.message}")
                self._commit(dataset_status=DatasetStatus.EMPTY, upload_error=error.message)
            if error is e:
                raise
            raise error from e

        if seq != self._upload_seq:
            logger.info(f"Discarding parse result for '{filename}': a newer upload started")
            return None

        self._commit(
            dataset_status=DatasetStatus.READY,
            dataset=dataset,
            axes=default_axis_selection(dataset.numeric_columns),
        )
        return dataset

    async def _fetch_insights(self, dataset: Dataset) -> None:
        try:
            payload = await self._insight_client.generate_insights(dataset)
        except asyncio.CancelledError:
            logger.info(f"Insight fetch for dataset {dataset.id} cancelled")
            raise
        except AppException as e:
            result = InsightFailure(dataset_id=dataset.id, message=e.message, kind=e.kind)
        except Exception as e:
            logger.exception(f"Unexpected error while fetching insights: {e}")
            result = InsightFailure(
                dataset_id=dataset.id,
                message=str(e) or "An unknown error occurred during analysis.",
                kind=type(e).__name__,
            )
        else:
            result = InsightSuccess(
                dataset_id=dataset.id,
                recommendations=payload.recommendations,
                analysis=payload.analysis,
            )

        if not self.is_current(dataset.id):
            logger.info(f"Discarding stale insight result ({result.status}) for dataset {dataset.id}")
            return

        if isinstance(result, InsightFailure):
            logger.warning(f"Insight fetch failed [{result.kind}]: {result.message}")
        self._commit(insight=result)

    def select_axis(self, which: Union[Axis, str], column: str) -> AxisSelection:
        """
        Sets one axis. `column` must be empty or one of the numeric columns.
        Never re-parses or re-fetches.
        """
        try:
            axis = Axis(which)
        except ValueError:
            raise InvalidSelectionError(f"Unknown axis '{which}'. Expected 'x' or 'y'.")

        dataset = self._state.dataset
        numeric_columns = dataset.numeric_columns if dataset is not None else []
        if column and column not in numeric_columns:
            raise InvalidSelectionError(f"Column '{column}' is not a numeric column of the current dataset.")

        field = "x_axis" if axis is Axis.X else "y_axis"
        axes = self._state.axes.model_copy(update={field: column})
        self._commit(axes=axes)
        return axes

    def accept_recommendation(self, x_axis: str, y_axis: str) -> AxisSelection:
        """Applies a recommended pair as-is; names are not checked against the dataset."""
        axes = AxisSelection(x_axis=x_axis, y_axis=y_axis)
        self._commit(axes=axes)
        return axes

    # ── lifecycle helpers ─────────────────────────────────────────────────────
    async def wait_for_insights(self) -> SessionState:
        """Waits until no insight fetch for the current dataset is in flight."""
        while self._insight_task is not None and not self._insight_task.done():
            await asyncio.wait({self._insight_task})
        return self._state

    async def aclose(self) -> None:
        task, self._insight_task = self._insight_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
