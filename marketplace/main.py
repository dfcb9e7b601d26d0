import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.core.config import CORS_ORIGINS
from marketplace.core.errors import MessagingError
from marketplace.core.middleware import logging_middleware
from marketplace.database.connection import close_mongo_connection, connect_to_mongo, get_database
from marketplace.repositories.conversation_repository import ConversationRepository
from marketplace.repositories.device_repository import DeviceRepository
from marketplace.repositories.message_repository import MessageRepository
from marketplace.repositories.notification_repository import NotificationRepository
from marketplace.routers.contact import router as contact_router
from marketplace.routers.conversations import router as conversations_router
from marketplace.routers.devices import router as devices_router
from marketplace.routers.live import router as live_router
from marketplace.routers.notifications import router as notifications_router
from marketplace.utils.logging_config import setup_logging
from marketplace.utils.notifications import PushDispatcher
from marketplace.utils.realtime_bus import close_bus

logger = logging.getLogger(__name__)


async def ensure_indexes(db) -> None:
    for repo in (ConversationRepository(db), MessageRepository(db), NotificationRepository(db), DeviceRepository(db)):
        await repo.ensure_indexes()


@asynccontextmanager
async def lifespan(app: FastAPI):

    setup_logging()
    db = await connect_to_mongo()
    await ensure_indexes(db)
    dispatcher = PushDispatcher(DeviceRepository(db))
    await dispatcher.start()
    try:
        yield
    finally:
        await dispatcher.stop()
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Marketplace Messaging", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(logging_middleware)


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(conversations_router)
app.include_router(contact_router)
app.include_router(notifications_router)
app.include_router(devices_router)
app.include_router(live_router)


@app.get("/")
async def root():

    db = get_database()
    collections = await db.list_collection_names()
    return {"message": "Connected to MongoDB!", "collections": collections}
