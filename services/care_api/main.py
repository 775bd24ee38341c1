"""HealthOps care API - REST backend for the ambulance, hospital and patient dashboards."""
import asyncio
import json
import logging
import os
import sys
import threading
from typing import Dict, List, Tuple

import redis
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

# Add shared module to path
sys.path.append(os.path.join(os.path.dirname(__file__), '../../'))

from services.care_api import admin, ambulance, appointments, auth, feedback, hospital, notifications
from services.care_api.security import resolve_token_user
from services.care_api.workflow import WorkflowError
from shared.db import get_engine, init_db
from shared.redis_client import NOTIFICATION_CHANNEL_PREFIX, get_redis

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="HealthOps Care API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, admin, ambulance, hospital, notifications, appointments, feedback):
    app.include_router(module.router)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    logger.info(f"Refused {request.method} {request.url.path}: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse({"error": f"{field}: {message}" if field else message}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# WebSocket connection manager
class ConnectionManager:
    """Relays per-user notification messages from Redis to connected sockets."""

    def __init__(self):
        self.active_connections: Dict[int, List[WebSocket]] = {}
        self.pubsub_running = False
        self.message_queue: List[Tuple[int, dict]] = []
        self.queue_lock = threading.Lock()

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

        # Start Redis pubsub listener if not already running
        if not self.pubsub_running:
            self.start_redis_listener()

    def disconnect(self, websocket: WebSocket, user_id: int):
        connections = self.active_connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(user_id, None)

    async def send_to_user(self, user_id: int, message: dict):
        disconnected = []
        for connection in list(self.active_connections.get(user_id, [])):
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                disconnected.append(connection)

        # Remove disconnected connections
        for conn in disconnected:
            self.disconnect(conn, user_id)

    def queue_message(self, user_id: int, message: dict):
        """Queue a message for delivery."""
        with self.queue_lock:
            self.message_queue.append((user_id, message))

    def get_queued_messages(self) -> List[Tuple[int, dict]]:
        """Get and clear queued messages."""
        with self.queue_lock:
            messages = self.message_queue[:]
            self.message_queue.clear()
            return messages

    def handle_pubsub_message(self, message: dict):
        """Route one pubsub message to its owner's queue."""
        if message['type'] != 'pmessage':
            return
        channel = message['channel']
        try:
            user_id = int(channel[len(NOTIFICATION_CHANNEL_PREFIX):])
            data = json.loads(message['data'])
        except ValueError as e:
            logger.warning(f"Dropping malformed message on {channel}: {e}")
            return
        self.queue_message(user_id, data)

    def start_redis_listener(self):
        """Start background thread to listen to Redis pubsub."""
        def listen():
            self.pubsub_running = True
            try:
                pubsub = get_redis().pubsub()
                pubsub.psubscribe(f"{NOTIFICATION_CHANNEL_PREFIX}*")
                for message in pubsub.listen():
                    self.handle_pubsub_message(message)
            except redis.RedisError as e:
                logger.error(f"Redis listener stopped: {e}")
            finally:
                self.pubsub_running = False

        thread = threading.Thread(target=listen, daemon=True)
        thread.start()


manager = ConnectionManager()


# Background task to process message queue
async def process_message_queue():
    """Background task to deliver queued messages."""
    while True:
        for user_id, msg in manager.get_queued_messages():
            await manager.send_to_user(user_id, msg)
        await asyncio.sleep(0.1)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = ""):
    """WebSocket endpoint for real-time notifications. Authenticates with ?token=."""
    try:
        with Session(get_engine()) as session:
            user_id = resolve_token_user(session, token).id
    except StarletteHTTPException as e:
        logger.info(f"Refused websocket connection: {e.detail}")
        await websocket.close(code=1008)
        return

    await manager.connect(websocket, user_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket, user_id)


@app.on_event("startup")
async def startup():
    """Create tables, seed the system admin and start background tasks."""
    engine = get_engine()
    init_db(engine)
    admin.initialize_admin(engine)
    asyncio.create_task(process_message_queue())


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "care-api"}


@app.get("/api/ping")
async def ping():
    return {"message": "pong"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
