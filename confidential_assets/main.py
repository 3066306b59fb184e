from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

from . import config
from .routers import assets, session, status
from .services.tracker_service import AssetTracker

logger = logging.getLogger(__name__)


def create_app(tracker: AssetTracker | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "tracker", None) is None:
            try:
                app.state.tracker = AssetTracker.from_config()
            except Exception as e:
                # Allow the app to start; endpoints answer 503 until configured
                logger.error(f"CRITICAL: Could not build asset tracker: {e}", exc_info=True)
                app.state.tracker = None
        yield

    app = FastAPI(
        title="Confidential Asset Tracker Backend",
        description="Registers assets with FHE-encrypted values on-chain and reveals them through verified public decryption.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.tracker = tracker

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(session.router)
    app.include_router(assets.router)
    app.include_router(status.router)

    @app.get("/", tags=["Health Check"])
    def read_root():
        """Root endpoint for health check."""
        return {"status": "ok", "message": "Confidential Asset Tracker backend is running."}

    return app


app = create_app()


# --- Server Startup (for local development) ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("confidential_assets.main:app", host="0.0.0.0", port=8000, reload=True)
