"""
Payment API endpoints
Group payments, split bills, gateway callbacks and hosted checkout
"""

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import async_sessionmaker
from typing import Optional
import hmac
import structlog

from restoflow.core.auth import Identity
from restoflow.core.config import get_settings
from restoflow.core.database import get_session_factory
from restoflow.core.dependencies import get_notifier, order_scope, require_permission
from restoflow.core.permissions import Permission
from restoflow.api.responses import result_response
from restoflow.api.schemas import (
    GroupPaymentCreate, PaymentCallback, SplitBillsCreate, SplitBillPay,
    SplitBillCallback, CheckoutCreate
)
from restoflow.services.gateways import GatewayCheckoutService, gateway_registry
from restoflow.services.settlement import CallbackStatus, SettlementService, SplitShare

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_gateway_registry():
    return gateway_registry


async def verify_callback_secret(x_callback_secret: Optional[str] = Header(default=None)):
    """Gateway callbacks carry the shared secret when one is configured"""
    expected = get_settings().PAYMENT_CALLBACK_SECRET
    if not expected:
        return
    if not x_callback_secret or not hmac.compare_digest(x_callback_secret, expected):
        logger.warning("Rejected payment callback with bad secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid callback secret"
        )


@router.post("/group", status_code=status.HTTP_201_CREATED)
async def create_group_payment(
    request: GroupPaymentCreate,
    identity: Identity = Depends(require_permission(Permission.PAYMENT_INITIATE)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Settle all of a customer's completed, unpaid orders in one payment"""
    if identity.is_customer:
        customer_id = identity.id
    else:
        if request.customer_id is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="customer_id is required"
            )
        if not identity.is_platform_admin and identity.restaurant_id != request.restaurant_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )
        customer_id = request.customer_id

    result = await SettlementService(session_factory, notifier).create_group_payment(
        customer_id,
        request.restaurant_id,
        provider=request.provider,
        method=request.method,
        idempotency_key=request.idempotency_key,
    )
    return result_response(result, status.HTTP_201_CREATED)


@router.post("/callback", dependencies=[Depends(verify_callback_secret)])
async def payment_gateway_callback(
    callback: PaymentCallback,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Gateway reports the outcome for a correlation id"""
    logger.info(f"Payment callback {callback.status.value} for {callback.provider_ref}")
    result = await SettlementService(session_factory, notifier).reconcile(
        callback.provider_ref,
        callback.status,
        payload=callback.payload,
        split_bill_id=callback.split_bill_id,
    )
    return result_response(result)


@router.post("/split-bills/create", status_code=status.HTTP_201_CREATED)
async def create_split_bills(
    request: SplitBillsCreate,
    identity: Identity = Depends(require_permission(Permission.PAYMENT_SPLIT)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Split an order into independently paid shares"""
    result = await SettlementService(session_factory, notifier).create_split_bills(
        request.order_id,
        [SplitShare(label=share.label, amount=share.amount) for share in request.splits],
        allow_partial=request.allow_partial,
        **order_scope(identity),
    )
    return result_response(result, status.HTTP_201_CREATED)


@router.post("/split-bills/{split_id}/pay", status_code=status.HTTP_201_CREATED)
async def pay_split_bill(
    split_id: int,
    request: SplitBillPay,
    identity: Identity = Depends(require_permission(Permission.PAYMENT_INITIATE)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Open a payment for one split share"""
    result = await SettlementService(session_factory, notifier).pay_split_bill(
        split_id,
        provider=request.provider,
        method=request.method,
        **order_scope(identity),
    )
    return result_response(result, status.HTTP_201_CREATED)


@router.post("/split-bills/callback", dependencies=[Depends(verify_callback_secret)])
async def split_bill_callback(
    callback: SplitBillCallback,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier)
):
    """Gateway confirms a split share payment"""
    logger.info(f"Split bill callback for {callback.provider_ref}")
    result = await SettlementService(session_factory, notifier).reconcile(
        callback.provider_ref,
        CallbackStatus.SUCCESS,
        payload=callback.payload,
        split_bill_id=callback.split_bill_id,
    )
    return result_response(result)


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
async def create_checkout(
    request: CheckoutCreate,
    identity: Identity = Depends(require_permission(Permission.PAYMENT_INITIATE)),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    registry=Depends(get_gateway_registry)
):
    """Create a hosted gateway checkout for an open correlation id"""
    result = await GatewayCheckoutService(session_factory, registry).create_checkout(
        request.provider_ref, **order_scope(identity)
    )
    return result_response(result, status.HTTP_201_CREATED)
