"""
Real-time relay process

Subscribes to the meeting updates channel and forwards each event to the
WebSocket connections that joined the meeting's room.

Client protocol:
    -> {"action": "join", "meetingId": "<id>"}
    -> {"action": "leave", "meetingId": "<id>"}
    <- {"event": "update", "data": {"type": ..., "userId": ..., ...}}
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from .. import config
from ..redis_client import create_redis_client
from ..shared.validators import is_valid_meeting_id
from .bus import EventBus
from .rooms import RoomManager

logger = logging.getLogger(__name__)


async def run_subscriber(
    bus: EventBus,
    rooms: RoomManager,
    reconnect_delay: float = config.RELAY_RECONNECT_DELAY_SECONDS,
) -> None:
    """Consume the bus forever, re-subscribing after any error"""
    while True:
        try:
            async for event in bus.listen():
                await rooms.deliver(event)
            logger.warning("⚠️ Pub/Sub stream ended, re-subscribing")
        except asyncio.CancelledError:
            raise
        except (RedisError, OSError) as e:
            logger.error(f"❌ Redis subscriber error: {e}")
        except Exception as e:
            logger.exception(f"❌ Relay subscriber crashed: {e}")
        await asyncio.sleep(reconnect_delay)


async def handle_client_message(websocket: WebSocket, rooms: RoomManager, message) -> None:
    if not isinstance(message, dict):
        logger.debug("Ignoring non-object relay message")
        return

    action = message.get("action")
    meeting_id = message.get("meetingId")
    if not is_valid_meeting_id(meeting_id):
        await websocket.send_json({"event": "error", "data": {"message": "Invalid meeting ID"}})
        return

    if action == "join":
        await rooms.join(websocket, meeting_id)
    elif action == "leave":
        await rooms.leave(websocket, meeting_id)
    else:
        await websocket.send_json({"event": "error", "data": {"message": "Unknown action"}})


def create_relay_app(
    redis_client: Optional[redis.Redis] = None,
    rooms: Optional[RoomManager] = None,
    subscribe: bool = True,
) -> FastAPI:
    rooms = rooms or RoomManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Relay starting up...")
        owns_client = redis_client is None
        client = redis_client or create_redis_client()
        subscriber_task = None
        if subscribe:
            subscriber_task = asyncio.create_task(run_subscriber(EventBus(client), rooms))

        yield

        logger.info("Relay shutting down...")
        if subscriber_task is not None:
            subscriber_task.cancel()
            try:
                await subscriber_task
            except asyncio.CancelledError:
                pass
        if owns_client:
            await client.aclose()

    app = FastAPI(title="meetsync relay", version="1.0.0", lifespan=lifespan)
    app.state.rooms = rooms

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.RELAY_CORS_ORIGINS,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.websocket("/ws")
    async def relay_socket(websocket: WebSocket):
        await websocket.accept()
        logger.info("🔌 Client connected")
        try:
            while True:
                try:
                    message = await websocket.receive_json()
                except (ValueError, KeyError):  # KeyError: binary frame
                    await websocket.send_json(
                        {"event": "error", "data": {"message": "Invalid JSON"}}
                    )
                    continue
                await handle_client_message(websocket, rooms, message)
        except WebSocketDisconnect:
            logger.info("❌ Client disconnected")
        finally:
            await rooms.disconnect(websocket)

    @app.get("/health")
    def health():
        return {"status": "healthy", "connections": rooms.connection_count}

    return app
