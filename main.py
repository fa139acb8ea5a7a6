# file: main.py

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from swoptrader.config import ALLOWED_ORIGINS, LOG_LEVEL, PORT
from swoptrader.controllers.admin import router as admin_router
from swoptrader.controllers.chats import router as chats_router
from swoptrader.controllers.health import router as health_router
from swoptrader.controllers.items import router as items_router
from swoptrader.controllers.notification import router as notification_router
from swoptrader.controllers.offers import router as offers_router
from swoptrader.controllers.trades import router as trades_router
from swoptrader.controllers.users import router as users_router
from swoptrader.database.connection import AsyncSessionLocal, init_db
from swoptrader.services.firebase_messaging import PushNotConfiguredError, load_push_transport
from swoptrader.services.offer_notifications import OfferNotificationDispatcher
from swoptrader.utils.responses import error_response

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SwopTrader API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One transport per process; the dispatcher gets it by reference.
push_transport = load_push_transport()
app.state.offer_dispatcher = OfferNotificationDispatcher(push_transport, AsyncSessionLocal)

API_PREFIX = "/api/v1"
app.include_router(health_router, tags=["health"])
app.include_router(users_router, prefix=f"{API_PREFIX}/users", tags=["users"])
app.include_router(notification_router, prefix=f"{API_PREFIX}/notifications", tags=["notifications"])
app.include_router(items_router, prefix=f"{API_PREFIX}/items", tags=["items"])
app.include_router(offers_router, prefix=f"{API_PREFIX}/offers", tags=["offers"])
app.include_router(chats_router, prefix=f"{API_PREFIX}/chats", tags=["chats"])
app.include_router(trades_router, prefix=f"{API_PREFIX}/trades", tags=["trades"])
app.include_router(admin_router, prefix=f"{API_PREFIX}/admin", tags=["admin"])


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return error_response(404, "Route not found")
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    fields = [".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]) for error in errors]
    missing = [field for field, error in zip(fields, errors) if error["type"] == "missing"]
    if missing:
        return error_response(400, f"Missing required field(s): {', '.join(missing)}")
    return error_response(400, f"Invalid value for: {', '.join(fields)}")


@app.exception_handler(PushNotConfiguredError)
async def push_not_configured_handler(request: Request, exc: PushNotConfiguredError):
    return error_response(503, "Push notifications are not configured")


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Unique constraint violated on {request.method} {request.url.path}: {exc.orig}")
    return error_response(409, "A record with the same id or unique field already exists")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal server error")


@app.on_event("startup")
async def startup_event():
    await init_db()
    logger.info(f"SwopTrader API ready on port {PORT}; base URL {API_PREFIX}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=PORT)
