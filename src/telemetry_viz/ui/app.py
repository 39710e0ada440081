import streamlit as st
import asyncio
import sys
import os
import json
import pandas as pd


from dotenv import load_dotenv
load_dotenv()

# --- PATH SETUP ---
current_file_path = os.path.abspath(__file__)
src_root = os.path.dirname(os.path.dirname(os.path.dirname(current_file_path)))
if src_root not in sys.path:
    sys.path.insert(0, src_root)


from telemetry_viz.core.session import SessionController
from telemetry_viz.core.visualization import axis_options, build_line_chart, preview_rows
from telemetry_viz.models import DatasetStatus
from telemetry_viz.utils.exceptions import AppException, VisualizationError
from telemetry_viz.utils.logger import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# PAGE CONFIG
# ---------------------------------------------------------------------------
st.set_page_config(page_title="Racecar Telemetry Visualizer", page_icon="🏎️", layout="wide")
st.markdown("""
<style>
.stApp { background-color: #0E1117; }
</style>
""", unsafe_allow_html=True)

# ---------------------------------------------------------------------------
# SESSION STATE
# ---------------------------------------------------------------------------
for key, default in [
    ("controller",      None),
    ("loaded_filename", None),
]:
    if key not in st.session_state:
        st.session_state[key] = default

if st.session_state.controller is None:
    st.session_state.controller = SessionController()

controller: SessionController = st.session_state.controller


# ---------------------------------------------------------------------------
# HELPERS
# ---------------------------------------------------------------------------
async def _ingest(content: bytes, filename: str):
    # The insight task lives on this loop, so wait for it before the loop closes
    await controller.upload(content, filename)
    await controller.wait_for_insights()


def api_key_is_set() -> bool:
    return bool(os.getenv("GEMINI_API_KEY") or os.getenv("GROQ_API_KEY"))


def render_insights(state):
    insight = state.insight
    st.subheader("🧠 LLM Driven Data Insights")

    if insight.status == "fetching":
        st.info("Generating insights…")
        return
    if insight.status == "failed":
        st.error(f"Insight generation failed: {insight.message}")
        return
    if insight.status != "ready":
        st.caption("Upload a CSV file to begin performance analysis.")
        return

    if insight.recommendations:
        st.markdown("**✨ Recommended Visualizations**")
        cols = st.columns(2)
        for i, rec in enumerate(insight.recommendations):
            with cols[i % 2]:
                st.markdown(f"**{rec.y_axis} vs. {rec.x_axis}**  \n_{rec.reason}_")
                if st.button("Visualize", key=f"rec_{i}"):
                    controller.accept_recommendation(rec.x_axis, rec.y_axis)
                    st.rerun()

    if insight.analysis:
        st.markdown("**⚠️ Anomaly & Performance Analysis**")
        with st.container(border=True):
            st.markdown(insight.analysis)


# ---------------------------------------------------------------------------
# SIDEBAR
# ---------------------------------------------------------------------------
with st.sidebar:
    st.title("⚙️ Setup")

    if api_key_is_set():
        st.success("✅ API Key loaded from environment")
    else:
        user_key = st.text_input("Enter Gemini API Key", type="password")
        if user_key:
            # The insight client reads its credential from the environment on every call
            os.environ["GEMINI_API_KEY"] = user_key
        else:
            st.warning("⚠️ No API key. Insights will fail until one is set.")

    st.markdown("---")

    uploaded_file = st.file_uploader("Upload telemetry CSV", type=["csv"])
    if uploaded_file and uploaded_file.name != st.session_state.loaded_filename:
        st.session_state.loaded_filename = uploaded_file.name
        try:
            with st.spinner("Processing data stream…"):
                asyncio.run(_ingest(uploaded_file.read(), uploaded_file.name))
            st.success(f"Loaded: {uploaded_file.name}")
        except AppException as e:
            logger.warning(f"Upload failed in UI: {e.message}")
            st.error(f"Error: {e.message}")

    state = controller.snapshot()
    if state.dataset is not None:
        st.caption(f"📄 {state.dataset.filename}")
        st.caption(f"Rows: {len(state.dataset.rows)}  |  Cols: {len(state.dataset.headers)}")


# ---------------------------------------------------------------------------
# MAIN AREA
# ---------------------------------------------------------------------------
st.title("🏎️ Racecar Telemetry Visualizer")

state = controller.snapshot()

if state.upload_error:
    st.error(state.upload_error)

if state.dataset_status is DatasetStatus.READY and state.dataset is not None:
    dataset = state.dataset

    # ── 1. Preview ────────────────────────────────────────────────────────────
    with st.expander(f"📋 Data preview (first 10 of {len(dataset.rows):,} rows)", expanded=True):
        st.dataframe(pd.DataFrame(preview_rows(dataset), columns=dataset.headers), use_container_width=True)

    # ── 2. Axis selection ─────────────────────────────────────────────────────
    x_options = axis_options(dataset, state.axes.x_axis)
    y_options = axis_options(dataset, state.axes.y_axis)
    x_col, y_col = st.columns(2)
    x_choice = x_col.selectbox("X-axis", x_options, index=x_options.index(state.axes.x_axis))
    y_choice = y_col.selectbox("Y-axis", y_options, index=y_options.index(state.axes.y_axis))
    if x_choice != state.axes.x_axis:
        controller.select_axis("x", x_choice)
    if y_choice != state.axes.y_axis:
        controller.select_axis("y", y_choice)

    # ── 3. Chart ──────────────────────────────────────────────────────────────
    axes = controller.snapshot().axes
    if axes.x_axis and axes.y_axis:
        try:
            fig = json.loads(build_line_chart(dataset, axes))
            st.plotly_chart(fig, use_container_width=True, key="telemetry_chart")
        except VisualizationError as e:
            st.warning(e.message)

    # ── 4. Insights ───────────────────────────────────────────────────────────
    render_insights(controller.snapshot())
else:
    st.markdown("Upload a telemetry CSV in the sidebar to get started.")
