"""
Order API endpoints
Placement, listing, status changes, cancellation and history of orders
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from restoflow.core.auth import Identity
from restoflow.core.database import get_session_factory
from restoflow.core.dependencies import get_notifier, order_scope, require_permission
from restoflow.core.permissions import Permission
from restoflow.api.responses import result_response
from restoflow.api.schemas import OrderCreate, OrderListRequest, OrderStatusUpdate, OrderCancel
from restoflow.services.orders import OrderListFilters, OrderService
from restoflow.services.order_status import OrderStatusService
from restoflow.services.pricing import Cart, CartLine

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    identity: Identity = Depends(require_permission(Permission.ORDER_PLACE)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Place an order from a cart"""
    if identity.is_customer:
        customer_id = identity.id
    else:
        if identity.restaurant_id != order_data.restaurant_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )
        customer_id = order_data.customer_id

    cart = Cart(
        restaurant_id=order_data.restaurant_id,
        table_id=order_data.table_id,
        customer_id=customer_id,
        delivery_type=order_data.delivery_type,
        note=order_data.note,
        items=[
            CartLine(
                food_item_id=line.food_item_id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                addons=tuple(line.addons),
            )
            for line in order_data.items
        ],
    )

    result = await OrderService(session_factory, notifier).place_order(cart)
    return result_response(result, status.HTTP_201_CREATED)


@router.post("/get-list")
async def get_order_list(
    request: OrderListRequest,
    identity: Identity = Depends(require_permission(Permission.ORDER_VIEW)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """List orders visible to the caller, with filters and paging"""
    filters = OrderListFilters(
        restaurant_id=request.restaurant_id,
        order_no=request.order_no,
        status=request.status,
        payment_status=request.payment_status,
        delivery_type=request.delivery_type,
        date_from=request.date_from,
        date_to=request.date_to,
        min_amount=request.min_amount,
        max_amount=request.max_amount,
    )
    result = await OrderService(session_factory, notifier).list_orders(
        identity, filters, offset=request.offset, limit=request.limit
    )
    return result_response(result)


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    identity: Identity = Depends(require_permission(Permission.ORDER_UPDATE_STATUS)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Move an order to a new status"""
    result = await OrderStatusService(session_factory, notifier).transition(
        order_id,
        update.status,
        actor_id=identity.id,
        note=update.note,
        **order_scope(identity),
    )
    return result_response(result)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    cancel: OrderCancel,
    identity: Identity = Depends(require_permission(Permission.ORDER_CANCEL_OWN)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Customer cancels one of their own orders"""
    result = await OrderStatusService(session_factory, notifier).cancel_by_customer(
        order_id, identity.id, cancel.reason
    )
    return result_response(result)


@router.get("/{order_id}/history")
async def get_order_history(
    order_id: int,
    identity: Identity = Depends(require_permission(Permission.ORDER_VIEW)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Status history of an order"""
    result = await OrderStatusService(session_factory, notifier).history(
        order_id, **order_scope(identity)
    )
    return result_response(result)
