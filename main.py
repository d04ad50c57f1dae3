from logging_config import setup_logging

# Initialize logging BEFORE anything else
setup_logging()

from contextlib import asynccontextmanager
from logging_config import get_logger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from middleware import RequestLifecycleMiddleware
from routes import notifications, projects, tasks, task_deadlines, realtime
from automations.scheduler import DeadlineScheduler
from utils.realtime import init_hub, shutdown_hub
from database import client, db
from config import config

logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_hub()

    scheduler = None
    if config.DEADLINE_SCHEDULER_ENABLED:
        scheduler = DeadlineScheduler(db)
        await scheduler.start()
    else:
        logger.info("Deadline scheduler disabled")

    yield

    if scheduler:
        await scheduler.stop()
    shutdown_hub()
    logger.info("CapstoneHub API shut down")


app = FastAPI(title="CapstoneHub API", lifespan=lifespan)

# CORS remains here as it's a global setting
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL] if config.ENV == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request lifecycle middleware (request ID, context vars, duration logging)
app.add_middleware(RequestLifecycleMiddleware)

# REGISTER ROUTERS
# Deadline routes first: their fixed paths live under /api/tasks too
app.include_router(task_deadlines.router)
app.include_router(tasks.router)
app.include_router(projects.router)
app.include_router(notifications.router)
app.include_router(realtime.router)

logger.info("All routers registered, CapstoneHub API ready")

@app.get("/")
async def root():
    return {"status": "online", "message": "CapstoneHub API is running"}


@app.get("/health")
async def health():
    database_up = await client.ping()
    return {"status": "ok" if database_up else "degraded", "database": "up" if database_up else "down"}
