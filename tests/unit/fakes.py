import asyncio
from telemetry_viz.models import InsightPayload, Recommendation

TELEMETRY_CSV = (
    "TimeStamp,D1_Commanded_Torque,D1_DC_Bus_Voltage\n"
    "1718634563547,24.73,517.17\n"
    "1718634563556,24.6,516.66\n"
    "1718634563565,24.5,517.15\n"
).encode("utf-8")


def make_payload(analysis: str = "All nominal.") -> InsightPayload:
    return InsightPayload(
        recommendations=[
            Recommendation(x_axis="TimeStamp", y_axis="D1_DC_Bus_Voltage", reason="Bus stability."),
        ],
        analysis=analysis,
    )


class FakeInsightClient:
    """Returns a canned payload (or raises) and records every dataset it was asked about."""

    def __init__(self, payload=None, error=None):
        self.payload = payload or make_payload()
        self.error = error
        self.calls = []

    async def generate_insights(self, dataset):
        self.calls.append(dataset)
        if self.error is not None:
            raise self.error
        return self.payload


class GatedInsightClient:
    """Each call blocks until the test resolves the future recorded for it."""

    def __init__(self):
        self.pending = []

    async def generate_insights(self, dataset):
        future = asyncio.get_running_loop().create_future()
        self.pending.append((dataset, future))
        return await future
