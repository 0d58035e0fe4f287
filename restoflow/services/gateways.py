"""
Payment gateway clients and hosted checkout

Clients are built by per-gateway factories and cached by gateway, environment
and client id. A cached client is rebuilt when the credentials behind it
change, and the cache can be cleared explicitly when credentials rotate.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
from fastapi.concurrency import run_in_threadpool
from sqlmodel import select, col
from sqlalchemy.ext.asyncio import async_sessionmaker
import hashlib
import mercadopago
import structlog

from restoflow.core.config import Settings, get_settings
from restoflow.core.money import money_sum
from restoflow.core.results import ErrorCode, ServiceResult, failure, success
from restoflow.models import Order, Payment, PaymentStatus
from restoflow.services.order_status import check_order_owner

logger = structlog.get_logger(__name__)

MERCADOPAGO = "mercadopago"


@dataclass(frozen=True)
class GatewayConfig:
    """Credentials for one gateway account"""
    gateway: str
    env: str
    client_id: str
    client_secret: str
    client_version: int = 1

    @property
    def cache_key(self) -> str:
        return f"{self.gateway}-{self.env}-{self.client_id}"

    @property
    def signature(self) -> str:
        raw = f"{self.client_id}-{self.client_secret}-{self.client_version}-{self.env}"
        return hashlib.sha256(raw.encode()).hexdigest()

    @property
    def is_production(self) -> bool:
        return self.env.upper() == "PRODUCTION"


def _mercadopago_client(config: GatewayConfig):
    return mercadopago.SDK(config.client_secret)


class GatewayClientRegistry:
    """Cache of gateway SDK clients"""

    def __init__(self, factories: Optional[Dict[str, Callable[[GatewayConfig], Any]]] = None):
        self._factories: Dict[str, Callable[[GatewayConfig], Any]] = dict(
            factories if factories is not None else {MERCADOPAGO: _mercadopago_client}
        )
        self._clients: Dict[str, Tuple[str, Any]] = {}

    def register(self, gateway: str, factory: Callable[[GatewayConfig], Any]):
        self._factories[gateway] = factory
        self.invalidate(gateway)

    def get_client(self, config: GatewayConfig):
        key = config.cache_key
        cached = self._clients.get(key)
        if cached is not None:
            signature, client = cached
            if signature == config.signature:
                return client
            logger.info(f"Gateway config changed for {key}, refreshing client")
            del self._clients[key]

        factory = self._factories.get(config.gateway)
        if factory is None:
            raise ValueError(f"Gateway not implemented: {config.gateway}")

        client = factory(config)
        self._clients[key] = (config.signature, client)
        logger.info(f"New gateway client created for {key}")
        return client

    def invalidate(self, gateway: Optional[str] = None) -> int:
        """Drop cached clients, all of them or those of one gateway"""
        keys = [
            key for key in self._clients
            if gateway is None or key.startswith(f"{gateway}-")
        ]
        for key in keys:
            del self._clients[key]
        if keys:
            logger.info(f"Invalidated {len(keys)} gateway clients", gateway=gateway)
        return len(keys)

    def __len__(self):
        return len(self._clients)


gateway_registry = GatewayClientRegistry()


class GatewayCheckoutService:
    """Opens a hosted checkout for the unpaid payments of a correlation id"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        registry: Optional[GatewayClientRegistry] = None,
        settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.registry = registry if registry is not None else gateway_registry
        self.settings = settings or get_settings()

    def default_config(self) -> Optional[GatewayConfig]:
        if not self.settings.MERCADOPAGO_ACCESS_TOKEN:
            return None
        return GatewayConfig(
            gateway=MERCADOPAGO,
            env=self.settings.PAYMENT_GATEWAY_ENV,
            client_id="default",
            client_secret=self.settings.MERCADOPAGO_ACCESS_TOKEN,
        )

    async def create_checkout(
        self,
        provider_ref: str,
        config: Optional[GatewayConfig] = None,
        customer_id: Optional[int] = None,
        restaurant_id: Optional[int] = None
    ) -> ServiceResult:
        config = config or self.default_config()
        if config is None:
            return failure(ErrorCode.GATEWAY_ERROR, "Payment gateway is not configured")

        async with self.session_factory() as session:
            payments = (await session.exec(
                select(Payment)
                .where(Payment.provider_ref == provider_ref)
                .order_by(col(Payment.id))
            )).all()
            if not payments:
                return failure(ErrorCode.PAYMENT_NOT_FOUND, "Payment not found")

            orders = []
            for order_id in sorted({p.order_id for p in payments}):
                order = await session.get(Order, order_id)
                denied = check_order_owner(order, customer_id, restaurant_id)
                if denied:
                    return denied
                orders.append(order)

        pending = [p for p in payments if p.status == PaymentStatus.UNPAID]
        if not pending:
            return failure(ErrorCode.PAYMENT_NOT_FOUND, "Nothing left to pay for this reference")

        amount = money_sum(p.amount for p in pending)
        preference = {
            "items": [
                {
                    "title": ", ".join(order.order_no for order in orders),
                    "quantity": 1,
                    "unit_price": float(amount),
                    "currency_id": pending[0].currency,
                }
            ],
            "external_reference": provider_ref,
            "notification_url": (
                f"{self.settings.PUBLIC_BASE_URL}{self.settings.API_V1_PREFIX}/payments/callback"
            ),
        }

        try:
            client = self.registry.get_client(config)
            result = await run_in_threadpool(client.preference().create, preference)
        except Exception as e:
            logger.error(f"Checkout creation failed for {provider_ref}: {e}")
            return failure(ErrorCode.GATEWAY_ERROR, "Payment gateway unavailable, please retry")

        if result.get("status") not in (200, 201):
            logger.error(
                f"Gateway rejected checkout for {provider_ref}",
                response=result.get("response"),
            )
            return failure(ErrorCode.GATEWAY_ERROR, "Payment gateway rejected the checkout")

        response = result["response"]
        checkout_url = response.get("init_point") if config.is_production else response.get("sandbox_init_point")
        logger.info(f"Checkout {response.get('id')} created for {provider_ref}", amount=str(amount))
        return success("Checkout created", {
            "provider_ref": provider_ref,
            "amount": str(amount),
            "checkout_id": response.get("id"),
            "checkout_url": checkout_url,
        })
