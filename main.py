import logging
import os
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import database
from crud import create_crud_router, store_provider
from schemas import Comment, User

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


setup_logging()

app = FastAPI(title="Comments API")

cors_origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Location", "ETag"],
)

get_comments_store = store_provider("comments")
get_users_store = store_provider("users")

app.include_router(create_crud_router("comments", Comment, get_comments_store), prefix="/comments")
app.include_router(create_crud_router("users", User, get_users_store), prefix="/users")

if database.db is None:
    logger.warning("DATABASE_URL / DATABASE_NAME not set; resource routes will answer 503")
else:
    logger.info("Using database %s", database.db.name)


@app.get("/")
def read_root():
    return {"name": "Comments API", "status": "ok"}


@app.get("/test")
def test_database():
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    db = database.db
    if db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = db.name
        response["connection_status"] = "Connected"

        # Try to list collections to verify connectivity
        try:
            collections = db.list_collection_names()
            response["collections"] = collections[:10]  # Show first 10 collections
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            logger.warning("Database connectivity check failed: %s", e)
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    else:
        response["database"] = "⚠️  Available but not initialized"

    # Check environment variables
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"

    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
