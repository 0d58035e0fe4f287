"""
Payment settlement engine

Two ways to pay: one group payment covering all of a customer's completed,
unpaid orders, or an order split into shares that are paid independently.
Both end in the same gateway callback reconciliation, keyed by the
correlation id (provider_ref) shared by the payments of one attempt.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence
from sqlmodel import select, col
from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import asyncio
import structlog

from restoflow.core.config import Settings, get_settings
from restoflow.core.identifiers import generate_reference, local_now
from restoflow.core.money import money_sum, to_money, within_tolerance
from restoflow.core.results import ErrorCode, ServiceResult, failure, success
from restoflow.core.websocket_manager import (
    PAYMENT_STATUS_UPDATED, customer_room, restaurant_room
)
from restoflow.models import (
    Order, OrderStatus, OrderPaymentStatus, Payment, PaymentStatus,
    SplitBill, OrderEvent, IdempotencyKey
)
from restoflow.schemas import PaymentRead, SplitBillRead
from restoflow.services.order_status import check_order_owner

logger = structlog.get_logger(__name__)


class CallbackStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class SplitShare:
    label: Optional[str]
    amount: Decimal


class CustomerLocks:
    """In-process advisory locks, one per customer"""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, customer_id: int) -> asyncio.Lock:
        return self._locks[customer_id]


customer_locks = CustomerLocks()


class SettlementService:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier,
        settings: Optional[Settings] = None,
        locks: Optional[CustomerLocks] = None
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.locks = locks if locks is not None else customer_locks

    async def _bounded(self, operation: str, coro, on_conflict: Optional[ServiceResult] = None) -> ServiceResult:
        """Run one settlement transaction under the configured timeout"""
        try:
            return await asyncio.wait_for(coro, timeout=self.settings.TRANSACTION_TIMEOUT_SECONDS)
        except IntegrityError as e:
            if on_conflict is None:
                logger.error(f"{operation} failed: {e}")
                return failure(ErrorCode.SETTLEMENT_FAILED, "Settlement failed, please retry")
            logger.warning(f"{operation} conflicted: {e.orig}")
            return on_conflict
        except asyncio.TimeoutError:
            logger.error(f"{operation} timed out")
            return failure(ErrorCode.SETTLEMENT_FAILED, "Settlement timed out, please retry")
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed: {e}")
            return failure(ErrorCode.SETTLEMENT_FAILED, "Settlement failed, please retry")

    # Group settlement

    async def create_group_payment(
        self,
        customer_id: int,
        restaurant_id: int,
        provider: str = "Gateway",
        method: str = "Online",
        idempotency_key: Optional[str] = None
    ) -> ServiceResult:
        """
        One payment per completed, unpaid order of the customer in the window,
        all sharing a fresh group_txn_id.

        Serialised per customer so two concurrent calls cannot both collect
        the same orders.
        """
        async with self.locks.get(customer_id):
            # A marker clash means another process initiated it first
            return await self._bounded(
                "Group payment",
                self._create_group_payment(customer_id, restaurant_id, provider, method, idempotency_key),
                on_conflict=failure(ErrorCode.DUPLICATE_GROUP_PAYMENT, "Group payment already initiated"),
            )

    async def _create_group_payment(
        self,
        customer_id: int,
        restaurant_id: int,
        provider: str,
        method: str,
        idempotency_key: Optional[str]
    ) -> ServiceResult:
        now = local_now()
        async with self.session_factory() as session:
            async with session.begin():
                marker_key = None
                if idempotency_key:
                    marker_key = f"group_payment:{customer_id}:{idempotency_key}"
                    existing = (await session.exec(
                        select(IdempotencyKey).where(IdempotencyKey.key == marker_key)
                    )).first()
                    if existing:
                        logger.info(f"Group payment replay for customer {customer_id}", key=marker_key)
                        return failure(
                            ErrorCode.DUPLICATE_GROUP_PAYMENT,
                            "Group payment already initiated",
                            existing.response,
                        )

                since = now - timedelta(hours=self.settings.GROUP_PAYMENT_WINDOW_HOURS)
                result = await session.exec(
                    select(Order)
                    .where(
                        Order.customer_id == customer_id,
                        Order.restaurant_id == restaurant_id,
                        Order.status == OrderStatus.COMPLETED,
                        Order.payment_status == OrderPaymentStatus.UNPAID,
                        Order.created_at >= since,
                        # Split orders settle share by share
                        ~exists().where(SplitBill.order_id == Order.id),
                    )
                    .order_by(col(Order.id))
                    .with_for_update()
                )
                orders = result.all()
                if not orders:
                    return failure(ErrorCode.NO_UNPAID_ORDERS, "No unpaid orders to settle")

                group_txn_id = generate_reference(self.settings.GROUP_TXN_PREFIX)
                payments = [
                    Payment(
                        order_id=order.id,
                        amount=order.net_amount,
                        currency=order.currency,
                        provider=provider,
                        provider_ref=group_txn_id,
                        method=method,
                        status=PaymentStatus.UNPAID,
                        created_at=now,
                    )
                    for order in orders
                ]
                session.add_all(payments)
                await session.flush()

                total = money_sum(order.net_amount for order in orders)
                summary = {
                    "group_txn_id": group_txn_id,
                    "total_amount": str(total),
                    "currency": orders[0].currency,
                    "order_ids": [order.id for order in orders],
                }
                session.add(IdempotencyKey(
                    key=marker_key or f"group_payment:{group_txn_id}",
                    owner=f"customer_{customer_id}",
                    request_path="createGroupPayment",
                    response=summary,
                    created_at=now,
                    expires_at=now + timedelta(hours=self.settings.GROUP_PAYMENT_WINDOW_HOURS),
                ))
                for order in orders:
                    session.add(OrderEvent(
                        order_id=order.id,
                        event_type="GroupPaymentInitiated",
                        payload={"provider_ref": group_txn_id, "amount": str(order.net_amount)},
                        created_at=now,
                    ))

                data = dict(summary)
                data["payments"] = [
                    PaymentRead.model_validate(p).model_dump(mode="json") for p in payments
                ]

        logger.info(
            f"Group payment {group_txn_id} created for customer {customer_id}",
            orders=len(data["order_ids"]),
            total=data["total_amount"],
        )
        return success("Group payment initiated", data)

    # Split settlement

    async def create_split_bills(
        self,
        order_id: int,
        splits: Sequence[SplitShare],
        allow_partial: bool = False,
        customer_id: Optional[int] = None,
        restaurant_id: Optional[int] = None
    ) -> ServiceResult:
        """
        Split an order into shares.

        Unless allow_partial is set the shares must add up to net_amount within
        the configured tolerance. Nothing is written when they do not.
        """
        if not splits:
            return failure(ErrorCode.SPLIT_MISMATCH, "At least one split is required")
        amounts = [to_money(share.amount) for share in splits]
        if any(amount <= 0 for amount in amounts):
            return failure(ErrorCode.SPLIT_MISMATCH, "Split amounts must be positive")

        return await self._bounded(
            "Split bill creation",
            self._create_split_bills(order_id, splits, amounts, allow_partial, customer_id, restaurant_id),
        )

    async def _create_split_bills(
        self,
        order_id: int,
        splits: Sequence[SplitShare],
        amounts: List[Decimal],
        allow_partial: bool,
        customer_id: Optional[int],
        restaurant_id: Optional[int]
    ) -> ServiceResult:
        tolerance = self.settings.SPLIT_TOLERANCE
        total = money_sum(amounts)
        now = local_now()

        async with self.session_factory() as session:
            async with session.begin():
                order = (await session.exec(
                    select(Order).where(Order.id == order_id).with_for_update()
                )).first()
                if order is None:
                    return failure(ErrorCode.ORDER_NOT_FOUND, "Order not found")
                denied = check_order_owner(order, customer_id, restaurant_id)
                if denied:
                    return denied
                if order.payment_status == OrderPaymentStatus.PAID:
                    return failure(ErrorCode.SPLIT_ALREADY_PAID, "Order is already paid")

                existing = (await session.exec(
                    select(SplitBill.id).where(SplitBill.order_id == order_id)
                )).first()
                if existing is not None:
                    return failure(ErrorCode.SPLIT_MISMATCH, "Order already has split bills")

                net = to_money(order.net_amount)
                if not allow_partial and not within_tolerance(total, net, tolerance):
                    return failure(
                        ErrorCode.SPLIT_MISMATCH,
                        f"Splits total {total} but the order total is {net}",
                    )
                if allow_partial and total > net + tolerance:
                    return failure(
                        ErrorCode.SPLIT_MISMATCH,
                        f"Splits total {total} exceeds the order total {net}",
                    )

                bills = [
                    SplitBill(
                        order_id=order.id,
                        split_label=share.label,
                        amount=amount,
                        is_partial=allow_partial,
                        created_at=now,
                    )
                    for share, amount in zip(splits, amounts)
                ]
                session.add_all(bills)

                if allow_partial and total < net - tolerance:
                    order.payment_status = OrderPaymentStatus.PARTIALLY_PAID
                    order.updated_at = now
                    session.add(order)

                session.add(OrderEvent(
                    order_id=order.id,
                    event_type="SplitBillsCreated",
                    payload={
                        "count": len(bills),
                        "total": str(total),
                        "partial": allow_partial,
                    },
                    created_at=now,
                ))
                await session.flush()

                data = {
                    "order_id": order.id,
                    "order_no": order.order_no,
                    "net_amount": str(net),
                    "payment_status": order.payment_status.value,
                    "split_bills": [
                        SplitBillRead.model_validate(bill).model_dump(mode="json") for bill in bills
                    ],
                }

        logger.info(f"Created {len(amounts)} split bills for order {data['order_no']}", total=str(total))
        return success("Split bills created", data)

    async def pay_split_bill(
        self,
        split_id: int,
        provider: str = "Gateway",
        method: str = "Online",
        customer_id: Optional[int] = None,
        restaurant_id: Optional[int] = None
    ) -> ServiceResult:
        """Open a payment for one share. The share is marked paid only by the callback."""
        return await self._bounded(
            "Split payment",
            self._pay_split_bill(split_id, provider, method, customer_id, restaurant_id),
        )

    async def _pay_split_bill(
        self,
        split_id: int,
        provider: str,
        method: str,
        customer_id: Optional[int],
        restaurant_id: Optional[int]
    ) -> ServiceResult:
        now = local_now()
        async with self.session_factory() as session:
            async with session.begin():
                split = (await session.exec(
                    select(SplitBill).where(SplitBill.id == split_id).with_for_update()
                )).first()
                if split is None:
                    return failure(ErrorCode.SPLIT_NOT_FOUND, "Split bill not found")
                if split.paid:
                    return failure(ErrorCode.SPLIT_ALREADY_PAID, "Split bill is already paid")

                order = await session.get(Order, split.order_id)
                denied = check_order_owner(order, customer_id, restaurant_id)
                if denied:
                    return denied

                provider_ref = generate_reference(self.settings.SPLIT_TXN_PREFIX)
                payment = Payment(
                    order_id=split.order_id,
                    amount=split.amount,
                    currency=order.currency,
                    provider=provider,
                    provider_ref=provider_ref,
                    method=method,
                    status=PaymentStatus.UNPAID,
                    created_at=now,
                )
                session.add(payment)
                session.add(OrderEvent(
                    order_id=split.order_id,
                    event_type="SplitPaymentInitiated",
                    payload={"split_bill_id": split.id, "provider_ref": provider_ref},
                    created_at=now,
                ))
                await session.flush()

                data = {
                    "split_bill_id": split.id,
                    "provider_ref": provider_ref,
                    "amount": str(to_money(split.amount)),
                    "payment": PaymentRead.model_validate(payment).model_dump(mode="json"),
                }

        logger.info(f"Split payment {provider_ref} opened for split {split_id}")
        return success("Split payment initiated", data)

    # Callback reconciliation

    async def reconcile(
        self,
        provider_ref: str,
        status: CallbackStatus,
        payload: Optional[dict] = None,
        split_bill_id: Optional[int] = None
    ) -> ServiceResult:
        """
        Apply a gateway outcome to every payment sharing provider_ref.

        Replaying a callback is harmless: payments already Paid are never
        captured twice and never downgraded by a later failure.
        """
        status = CallbackStatus(status)
        result = await self._bounded(
            "Payment callback",
            self._reconcile(provider_ref, status, payload, split_bill_id),
        )
        if not result.ok:
            return result

        if status == CallbackStatus.SUCCESS and not result.data["duplicate"]:
            for order in result.data["orders"]:
                rooms = [restaurant_room(order["restaurant_id"])]
                if order["customer_id"] is not None:
                    rooms.append(customer_room(order["customer_id"]))
                await self.notifier.send_notification(
                    PAYMENT_STATUS_UPDATED,
                    {
                        "order_id": order["order_id"],
                        "order_no": order["order_no"],
                        "payment_status": order["payment_status"],
                        "provider_ref": provider_ref,
                    },
                    rooms,
                )
        return result

    async def _reconcile(
        self,
        provider_ref: str,
        status: CallbackStatus,
        payload: Optional[dict],
        split_bill_id: Optional[int]
    ) -> ServiceResult:
        tolerance = self.settings.SPLIT_TOLERANCE
        now = local_now()

        async with self.session_factory() as session:
            async with session.begin():
                payments = (await session.exec(
                    select(Payment)
                    .where(Payment.provider_ref == provider_ref)
                    .order_by(col(Payment.id))
                    .with_for_update()
                )).all()
                if not payments:
                    logger.warning(f"Callback for unknown payment reference {provider_ref}")
                    return failure(ErrorCode.PAYMENT_NOT_FOUND, "Payment not found")

                if status == CallbackStatus.SUCCESS:
                    touched = [p for p in payments if p.status != PaymentStatus.PAID]
                    for payment in touched:
                        payment.mark_paid(now)
                        session.add(payment)
                else:
                    touched = [p for p in payments if not p.is_final_status()]
                    for payment in touched:
                        payment.mark_failed(now)
                        session.add(payment)

                orders = []
                for order_id in sorted({p.order_id for p in touched}):
                    order = (await session.exec(
                        select(Order).where(Order.id == order_id).with_for_update()
                    )).one()
                    order_payments = [p for p in touched if p.order_id == order_id]

                    if status == CallbackStatus.SUCCESS:
                        await self._settle_order(
                            session, order, order_payments, split_bill_id, payload, tolerance, now
                        )
                    else:
                        session.add(OrderEvent(
                            order_id=order.id,
                            event_type="PaymentFailed",
                            payload={
                                "provider_ref": provider_ref,
                                "payment_ids": [p.id for p in order_payments],
                                "gateway": payload,
                            },
                            created_at=now,
                        ))

                    orders.append({
                        "order_id": order.id,
                        "order_no": order.order_no,
                        "restaurant_id": order.restaurant_id,
                        "customer_id": order.customer_id,
                        "payment_status": order.payment_status.value,
                    })

                data = {
                    "provider_ref": provider_ref,
                    "status": status.value,
                    "duplicate": not touched,
                    "payments": [
                        PaymentRead.model_validate(p).model_dump(mode="json") for p in payments
                    ],
                    "orders": orders,
                }

        if not touched:
            logger.info(f"Callback {status.value} for {provider_ref} already applied")
            return success("Payment already processed", data)

        logger.info(
            f"Callback {status.value} applied to {len(touched)} payments",
            provider_ref=provider_ref,
        )
        if status == CallbackStatus.SUCCESS:
            return success("Payment captured", data)
        return success("Payment marked as failed", data)

    async def _settle_order(
        self,
        session,
        order: Order,
        captured: List[Payment],
        split_bill_id: Optional[int],
        payload: Optional[dict],
        tolerance: Decimal,
        now
    ):
        """Update one order after its payments in this callback were captured"""
        net = to_money(order.net_amount)
        splits = (await session.exec(
            select(SplitBill)
            .where(SplitBill.order_id == order.id)
            .order_by(col(SplitBill.id))
            .with_for_update()
        )).all()

        captured_total = money_sum((await session.exec(
            select(Payment.amount).where(
                Payment.order_id == order.id,
                Payment.status == PaymentStatus.PAID,
            )
        )).all())

        if splits:
            for payment in captured:
                split = _match_split(splits, payment, split_bill_id)
                if split is None:
                    logger.warning(
                        f"No unpaid split of order {order.order_no} matches payment {payment.id}",
                        amount=str(payment.amount),
                    )
                    continue
                split.paid = True
                split.paid_at = now
                split.payment_id = payment.id
                session.add(split)
                session.add(OrderEvent(
                    order_id=order.id,
                    event_type="SplitPaymentCaptured",
                    payload={
                        "split_bill_id": split.id,
                        "payment_id": payment.id,
                        "provider_ref": payment.provider_ref,
                        "amount": str(to_money(payment.amount)),
                        "gateway": payload,
                    },
                    created_at=now,
                ))

            # Only a fully settled set of shares can close the order
            if all(split.paid for split in splits):
                paid_total = money_sum(split.amount for split in splits)
                if paid_total >= net - tolerance:
                    order.payment_status = OrderPaymentStatus.PAID
                else:
                    order.payment_status = OrderPaymentStatus.PARTIALLY_PAID
            elif captured_total >= net:
                logger.warning(
                    f"Order {order.order_no} fully captured outside its split bills",
                    captured=str(captured_total),
                )
                order.payment_status = OrderPaymentStatus.PAID
        else:
            for payment in captured:
                session.add(OrderEvent(
                    order_id=order.id,
                    event_type="PaymentCaptured",
                    payload={
                        "payment_id": payment.id,
                        "provider_ref": payment.provider_ref,
                        "amount": str(to_money(payment.amount)),
                        "gateway": payload,
                    },
                    created_at=now,
                ))
            if captured_total >= net:
                order.payment_status = OrderPaymentStatus.PAID
            else:
                order.payment_status = OrderPaymentStatus.PARTIALLY_PAID

        order.updated_at = now
        session.add(order)


def _match_split(splits: List[SplitBill], payment: Payment, split_bill_id: Optional[int]) -> Optional[SplitBill]:
    """Explicit split id first, then the oldest unpaid share of the same amount"""
    if split_bill_id is not None:
        for split in splits:
            if split.id == split_bill_id and not split.paid:
                return split
        logger.warning(f"Split bill {split_bill_id} not usable for payment {payment.id}, matching by amount")

    amount = to_money(payment.amount)
    for split in splits:
        if not split.paid and to_money(split.amount) == amount:
            return split
    return None
