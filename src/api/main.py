import logging
import os

from fastapi import FastAPI

from api import state
from api.routers import drag, events, goals, ops, plan

# Logging configuration
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Make My Day")

app.include_router(events.router)
app.include_router(drag.router)
app.include_router(goals.router)
app.include_router(plan.router)
app.include_router(ops.router)


@app.on_event("startup")
async def startup() -> None:
    # tests initialize state themselves before the app starts
    state.ensure_initialized()
    logger.info(f"Make My Day API started with {len(state.store)} events")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
