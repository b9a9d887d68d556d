from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from courtside.database import init_db, session_factory
from courtside.routes import analytics, courts, dispatch, generation, players, rankings, runtime, system_config
from courtside.services.dispatch_scheduler import DispatchScheduler
from courtside.settings import CORS_ORIGINS, DISPATCH_INTERVAL_SECONDS, RUN_DISPATCHER

APP_NAME = "Courtside Tournament API"

app = FastAPI(title=APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(players.router, prefix="/api", tags=["players"])
app.include_router(courts.router, prefix="/api", tags=["courts"])
app.include_router(system_config.router, prefix="/api", tags=["config"])
app.include_router(generation.router, prefix="/api", tags=["generation"])

# Court dispatch ("dispatch once"; the background loop is started below)
app.include_router(dispatch.router, prefix="/api", tags=["dispatch"])

# Read-only estimates plus the boost write
app.include_router(analytics.router, prefix="/api", tags=["analytics"])

# Match status + scoring
app.include_router(runtime.router, prefix="/api", tags=["runtime"])

# Final placings and cumulative points
app.include_router(rankings.router, prefix="/api", tags=["rankings"])

scheduler = DispatchScheduler(session_factory, interval_seconds=DISPATCH_INTERVAL_SECONDS, name="api")


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    if RUN_DISPATCHER:
        scheduler.start()


@app.on_event("shutdown")
def on_shutdown():
    if scheduler.running:
        scheduler.stop()


@app.get("/api/health")
def health_check():
    return {"app_name": APP_NAME, "status": "healthy", "dispatcher_running": scheduler.running}
