from fastapi import FastAPI
from app.db import Base, engine
import app.models  # noqa: F401 ensure models are imported so tables are known
from app.api.routes import router as api_router
from app.scheduler import scheduler, start_scheduler

# create FastAPI instance
app = FastAPI(title="event-ingest")
app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    start_scheduler()


@app.on_event("shutdown")
def on_shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)
