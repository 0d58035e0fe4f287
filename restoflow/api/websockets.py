"""
WebSocket endpoints for real-time updates

Clients authenticate at connect time with a bearer token (Authorization
header or ?token=), then talk in JSON frames shaped {"event": ..., "data": ...}.
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import async_sessionmaker
from datetime import datetime
from typing import Optional
import structlog

from restoflow.core.auth import AuthenticationFailed, Identity, identity_resolver
from restoflow.core.database import get_session_factory
from restoflow.core.permissions import Permission, has_permission
from restoflow.core.websocket_manager import NotificationChannel, channel
from restoflow.models import OrderStatus
from restoflow.services.order_status import OrderStatusService

logger = structlog.get_logger(__name__)
router = APIRouter()


def _error(message: str) -> dict:
    return {"event": "error", "data": {"message": message}}


async def handle_message(
    manager: NotificationChannel,
    websocket: WebSocket,
    identity: Identity,
    message: dict,
    status_service: OrderStatusService
) -> Optional[dict]:
    """Process one inbound frame. Returns the reply frame, if any."""
    if not isinstance(message, dict):
        return _error("Malformed message")

    event = message.get("event")
    data = message.get("data") or {}
    if not isinstance(data, dict):
        return _error("Malformed message")

    if event == "ping":
        return {"event": "pong", "data": {"timestamp": datetime.utcnow().isoformat()}}

    if event == "joinRoom":
        room = manager.join_room(websocket, data.get("room_type"), data.get("id"))
        if room is None:
            return None
        return {"event": "roomJoined", "data": {"room": room}}

    if event == "updateOrderStatus":
        if not identity.is_staff or not has_permission(Permission.ORDER_UPDATE_STATUS, identity.role):
            logger.warning(f"{identity.type.value} {identity.id} may not update order status")
            return _error("Not allowed")
        order_no = data.get("order_no")
        try:
            target = OrderStatus(data.get("status"))
        except ValueError:
            return _error("Unknown order status")
        if not order_no:
            return _error("order_no is required")

        result = await status_service.transition_by_order_no(
            order_no,
            target,
            actor_id=identity.id,
            note=data.get("note"),
            restaurant_id=None if identity.is_platform_admin else identity.restaurant_id,
        )
        return {"event": "updateOrderStatusResult", "data": result.to_dict()}

    if event == "cancelOrder":
        if not identity.is_customer:
            logger.warning(f"{identity.type.value} {identity.id} tried customer cancellation")
            return _error("Not allowed")
        order_no = data.get("order_no")
        if not order_no:
            return _error("order_no is required")

        result = await status_service.cancel_by_customer_order_no(
            order_no, identity.id, data.get("reason") or ""
        )
        return {"event": "cancelOrderResult", "data": result.to_dict()}

    logger.debug(f"Unknown event from {identity.type.value} {identity.id}: {event}")
    return _error("Unknown event")


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Realtime channel for staff and customers"""
    token = websocket.headers.get("authorization") or websocket.query_params.get("token")
    try:
        identity = identity_resolver.resolve_token(token)
    except AuthenticationFailed as e:
        logger.warning(f"AuthenticationFailed on WebSocket connect: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    status_service = OrderStatusService(session_factory, channel)
    try:
        await channel.connect(websocket, identity)

        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                channel.disconnect(websocket)
                break
            except ValueError:
                # Not JSON; the connection stays open
                await websocket.send_json(_error("Malformed message"))
                continue

            reply = await handle_message(channel, websocket, identity, message, status_service)
            if reply is not None:
                await websocket.send_json(reply)

    except Exception as e:
        logger.error(f"Error in WebSocket: {e}", exc_info=True)
        channel.disconnect(websocket)


@router.get("/ws/connections")
async def get_connection_stats():
    """Active realtime connections"""
    return channel.get_connection_count()
