import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import errors
from database import connect, ensure_indexes, get_db
from guard import RouteGuardMiddleware
from mailer import SmtpMailer
from push import OneSignalClient
from scheduler import NotificationScheduler
from routers import admin_auth, app as mobile, community, content, files, notifications, questions, user_auth

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = connect(config.DATABASE_URL, config.DATABASE_NAME)
    app.state.db = client[config.DATABASE_NAME]
    try:
        ensure_indexes(app.state.db)
    except PyMongoError as e:
        logger.warning("Could not ensure indexes: %s", e)

    app.state.mailer = SmtpMailer(config.SMTP_HOST, config.SMTP_PORT, config.SMTP_USER, config.SMTP_PASS,
                                  config.EMAIL_FROM)
    app.state.push = OneSignalClient(config.ONESIGNAL_APP_ID, config.ONESIGNAL_REST_API_KEY)

    scheduler = None
    if config.ENABLE_SCHEDULER:
        scheduler = NotificationScheduler(app.state.db, app.state.push, config.SCHEDULER_INTERVAL_SECONDS)
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()
    client.close()
    logger.info("Shut down")


app = FastAPI(title="Reclaim Admin API", lifespan=lifespan)

app.add_middleware(RouteGuardMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
errors.install(app)

for module in (admin_auth, user_auth, content, questions, community, notifications, mobile, files):
    app.include_router(module.router)


# -----------------------------
# Health
# -----------------------------
@app.get("/")
def root():
    return {"message": "Reclaim Admin API running"}


@app.get("/api/test-db")
def test_database(db: Database = Depends(get_db)):
    response = {
        "success": True,
        "backend": "OK",
        "database": "Connected" if db is not None else "Not Available",
        "collections": [],
    }
    if db is not None:
        try:
            response["collections"] = db.list_collection_names()
        except PyMongoError as e:
            response["success"] = False
            response["database"] = f"Error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
