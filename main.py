from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, SessionLocal, engine, settings
from core.runtime import build_runtime
from api import additional_infos, companies, games, settings as settings_api, teams, websocket

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料表、單例列，組裝 runtime 並恢復中斷的時段
    configure_logging(settings.log_level)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        bootstrap = build_runtime(
            SessionLocal,
            trade_period_seconds=settings.default_round_duration_seconds,
            registration_period_seconds=settings.registration_period_seconds,
            stop_grace_seconds=settings.stop_grace_seconds
        )
        game_settings = bootstrap.catalog_manager.ensure_settings(
            db, settings.default_round_duration_seconds
        )
        bootstrap.game_manager.update_trade_period(game_settings.rounds_duration_seconds)
        bootstrap.game_manager.ensure_game(db)
        bootstrap.game_manager.recover(db)
    finally:
        db.close()

    app.state.runtime = bootstrap
    logger.info("Investment game backend started")
    yield

    # Shutdown: 結束進行中的時段，等待背景執行緒收尾
    if not bootstrap.game_manager.shutdown(settings.shutdown_timeout_seconds):
        logger.warning("Background periods did not finish before shutdown timeout")
    logger.info("Investment game backend stopped")


app = FastAPI(
    title="Investment Game API",
    description="Backend API for the classroom stock investment game",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(games.router)
app.include_router(teams.router)
app.include_router(companies.router)
app.include_router(additional_infos.router)
app.include_router(settings_api.router)
app.include_router(websocket.router)


@app.get("/")
def root():
    return {"message": "Investment Game API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
