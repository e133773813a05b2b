from fastapi import FastAPI

from src.common import settings as common_settings
from src.common.logging import setup_logging
from src.common.metrics import setup_metrics
from src.common.telemetry import setup_otel

from .api import router

setup_logging(common_settings.settings.log_level)

app = FastAPI(title="route_planner")
setup_metrics(app, "route_planner")
setup_otel(app, "route_planner")


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
async def readyz() -> dict[str, str]:
    return {"status": "ready"}


app.include_router(router)
