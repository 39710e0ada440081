"""Racecar telemetry visualizer: CSV ingestion, axis selection and LLM insights."""

__version__ = "1.0.0"
