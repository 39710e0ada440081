import json
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional

from telemetry_viz.config import settings
from telemetry_viz.utils.exceptions import AppException
from telemetry_viz.utils.logger import get_logger

# Import core logic
from telemetry_viz.core.session import SessionController
from telemetry_viz.core.visualization import build_line_chart, preview_rows
from telemetry_viz.models import Axis, AxisSelection, Dataset, DatasetStatus, SessionState

logger = get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs"
)

# --- In-Memory Session ---
CONTROLLER: Optional[SessionController] = None


def get_controller() -> SessionController:
    global CONTROLLER
    if CONTROLLER is None:
        CONTROLLER = SessionController()
    return CONTROLLER


class AxisUpdate(BaseModel):
    axis: Axis
    column: str = ""


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.message})


def _serialize_state(state: SessionState) -> dict:
    """Session snapshot without the row payload."""
    body = state.model_dump(mode="json", by_alias=True, exclude={"dataset"})
    dataset = state.dataset
    body["dataset"] = None if dataset is None else {
        "id": dataset.id,
        "filename": dataset.filename,
        "headers": dataset.headers,
        "numericColumns": dataset.numeric_columns,
        "rows": len(dataset.rows),
    }
    return body


def _require_dataset(controller: SessionController) -> Dataset:
    state = controller.snapshot()
    if state.dataset_status is not DatasetStatus.READY or state.dataset is None:
        raise HTTPException(status_code=400, detail="No dataset loaded. Please upload a CSV file first.")
    return state.dataset


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "online", "message": f"{settings.APP_NAME} API is running"}


@app.post("/upload")
async def upload_csv(
    file: UploadFile = File(...),
    wait: bool = False,
    controller: SessionController = Depends(get_controller),
):
    """
    Uploads a telemetry CSV and starts the insight request for it.
    With `wait=true` the response is sent after the insight request settles.
    """
    logger.info(f"Received file upload: {file.filename}")
    content = await file.read()

    dataset = await controller.upload(content, file.filename or "")
    if dataset is None:
        raise HTTPException(status_code=409, detail="Upload was superseded by a newer upload.")

    if wait:
        await controller.wait_for_insights()

    return {
        "message": "File uploaded and processed successfully.",
        "session": _serialize_state(controller.snapshot()),
    }


@app.get("/session")
async def get_session(controller: SessionController = Depends(get_controller)):
    return _serialize_state(controller.snapshot())


@app.put("/axes")
async def select_axis(update: AxisUpdate, controller: SessionController = Depends(get_controller)):
    _require_dataset(controller)
    axes = controller.select_axis(update.axis, update.column)
    return axes.model_dump(by_alias=True)


@app.post("/recommendations/accept")
async def accept_recommendation(pair: AxisSelection, controller: SessionController = Depends(get_controller)):
    _require_dataset(controller)
    axes = controller.accept_recommendation(pair.x_axis, pair.y_axis)
    return axes.model_dump(by_alias=True)


@app.get("/chart")
async def get_chart(controller: SessionController = Depends(get_controller)):
    dataset = _require_dataset(controller)
    axes = controller.snapshot().axes
    chart_json = build_line_chart(dataset, axes)
    return {**axes.model_dump(by_alias=True), "chart": json.loads(chart_json)}


@app.get("/preview")
async def get_preview(limit: int = 10, controller: SessionController = Depends(get_controller)):
    dataset = _require_dataset(controller)
    return {
        "headers": dataset.headers,
        "total": len(dataset.rows),
        "rows": preview_rows(dataset, limit=max(0, limit)),
    }
