import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo import MongoClient

from config import Settings, get_settings
from database import ensure_indexes
from logger import logger
from media import LocalMediaStorage
from responses import register_exception_handlers
from routers import comments, dashboard, likes, playlists, subscriptions, tweets, users, videos


def create_app(
    settings: Optional[Settings] = None,
    mongo_client: Optional[MongoClient] = None,
    media_storage: Optional[LocalMediaStorage] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = mongo_client or MongoClient(settings.DATABASE_URL)
        app.state.db = client[settings.DATABASE_NAME]
        ensure_indexes(app.state.db)
        logger.info(f"Connected to MongoDB database '{settings.DATABASE_NAME}'")
        try:
            yield
        finally:
            if mongo_client is None:
                client.close()
            logger.info("MongoDB connection closed")

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.media = media_storage or LocalMediaStorage(settings.UPLOAD_DIR, settings.MEDIA_URL_PREFIX)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Uploaded media is served from the storage directory
    app.mount(settings.MEDIA_URL_PREFIX, StaticFiles(directory=str(app.state.media.upload_dir)), name="static")

    for module in (users, videos, comments, likes, subscriptions, playlists, tweets, dashboard):
        app.include_router(module.router)

    @app.get("/")
    def read_root():
        return {"message": "Video Sharing Backend is running"}

    @app.get("/test")
    def test_database(request: Request):
        info = {
            "backend": "running",
            "database_connected": False,
            "database_name": settings.DATABASE_NAME,
            "collections": []
        }
        try:
            db = getattr(request.app.state, "db", None)
            if db is not None:
                info["collections"] = db.list_collection_names()
                info["database_connected"] = True
        except Exception as e:
            logger.error(f"Database check failed: {e}")
            info["error"] = str(e)
        return info

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
