"""
WebSocket connection manager for real-time updates

Room-scoped, best-effort delivery. Events go to whoever is connected to a room
at the moment of sending; nothing is queued for offline clients, so clients
resynchronise through the HTTP read endpoints after reconnecting.

Room membership is derived from the authenticated identity only:
customer_<id> for a customer, restaurant_<id> for staff of that restaurant.
"""

from typing import Dict, Iterable, Optional, Set
from fastapi import WebSocket
from datetime import datetime
from json import dumps
import structlog

from restoflow.core.auth import Identity
from restoflow.core.permissions import Permission, has_permission

logger = structlog.get_logger(__name__)

# Outbound event names
NEW_ORDER = "newOrder"
ORDER_STATUS_UPDATED = "orderStatusUpdated"
ORDER_CANCELLED = "orderCancelled"
PAYMENT_STATUS_UPDATED = "paymentStatusUpdated"

ROOM_TYPES = ("customer", "restaurant")


def customer_room(customer_id) -> str:
    return f"customer_{customer_id}"


def restaurant_room(restaurant_id) -> str:
    return f"restaurant_{restaurant_id}"


def rooms_for_identity(identity: Identity) -> Set[str]:
    """The only rooms this identity may ever join"""
    if identity.is_customer:
        return {customer_room(identity.id)}
    if identity.restaurant_id is not None and has_permission(
        Permission.REALTIME_RESTAURANT_ROOM, identity.role
    ):
        return {restaurant_room(identity.restaurant_id)}
    return set()


class NotificationChannel:
    """Manages WebSocket connections and room broadcasts"""

    def __init__(self):
        self.started = False

        # Room name -> live connections
        self.rooms: Dict[str, Set[WebSocket]] = {}

        # WebSocket -> identity / joined rooms (for authorization and cleanup)
        self.connection_identity: Dict[WebSocket, Identity] = {}
        self.connection_rooms: Dict[WebSocket, Set[str]] = {}

    def start(self):
        self.started = True
        logger.info("Realtime channel started")

    def stop(self):
        self.started = False
        self.rooms.clear()
        self.connection_identity.clear()
        self.connection_rooms.clear()
        logger.info("Realtime channel stopped")

    async def connect(self, websocket: WebSocket, identity: Identity):
        """Accept an already-authenticated connection"""
        await websocket.accept()
        self.connection_identity[websocket] = identity
        self.connection_rooms[websocket] = set()
        logger.info(f"Connected {identity.type.value} {identity.id} WebSocket")

    def identity_of(self, websocket: WebSocket) -> Optional[Identity]:
        return self.connection_identity.get(websocket)

    def join_room(self, websocket: WebSocket, room_type: str, room_id) -> Optional[str]:
        """
        Join the requested room if it is the caller's own room.

        Returns the joined room name, or None when the request is refused.
        Refusals are logged only; the client gets no error frame.
        """
        identity = self.connection_identity.get(websocket)
        if identity is None:
            logger.warning("Join requested by unknown WebSocket")
            return None

        requested = f"{room_type}_{room_id}"
        if room_type not in ROOM_TYPES or requested not in rooms_for_identity(identity):
            logger.warning(
                f"Refused {identity.type.value} {identity.id} joining room {requested}",
                role=identity.role,
            )
            return None

        self.rooms.setdefault(requested, set()).add(websocket)
        self.connection_rooms[websocket].add(requested)
        logger.info(f"{identity.type.value} {identity.id} joined room {requested}")
        return requested

    def disconnect(self, websocket: WebSocket):
        """Disconnect a WebSocket connection"""
        identity = self.connection_identity.pop(websocket, None)
        for room in self.connection_rooms.pop(websocket, set()):
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(websocket)
            if not members:
                del self.rooms[room]

        if identity is None:
            logger.warning("Attempted to disconnect unknown WebSocket")
        else:
            logger.info(f"Disconnected {identity.type.value} {identity.id} WebSocket")

    async def send_notification(self, event: str, payload: dict, rooms: Iterable[str]) -> int:
        """
        Deliver payload to every member of each room.

        Fire-and-forget: failures are logged and the dead connection dropped,
        never raised to the caller. Returns the number of frames delivered.
        """
        if not self.started:
            logger.error(f"Realtime channel not initialized, dropping {event}")
            return 0

        message_json = dumps({
            "event": event,
            "data": payload,
            "timestamp": datetime.utcnow().isoformat()
        }, default=str)

        delivered = 0
        disconnected = []
        for room in rooms:
            # Copy, membership can change while we await
            connections = list(self.rooms.get(room, ()))
            if not connections:
                logger.debug(f"No connections for room {room}")
                continue

            for connection in connections:
                try:
                    await connection.send_text(message_json)
                    delivered += 1
                except Exception as e:
                    logger.error(f"Error sending {event} to connection in {room}: {e}")
                    disconnected.append(connection)

            logger.debug(f"Sent {event} to {len(connections)} connections in {room}")

        # Clean up dead connections
        for connection in disconnected:
            if connection in self.connection_identity:
                self.disconnect(connection)

        return delivered

    def get_connection_count(self) -> dict:
        """Get count of active connections"""
        return {
            "connections": len(self.connection_identity),
            "rooms": len(self.rooms),
            "room_memberships": sum(len(conns) for conns in self.rooms.values()),
        }


# Process-wide channel, started by the application lifespan
channel = NotificationChannel()
