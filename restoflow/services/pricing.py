"""
Order pricing engine

Validates a cart against the catalog and resolves every price once. The
resulting PricingSnapshot is authoritative: the writer persists it as-is and
never goes back to the catalog.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence
import structlog

from restoflow.core.money import ZERO, money_sum, to_money
from restoflow.core.results import ErrorCode, ServiceResult, failure, success
from restoflow.models import (
    DeliveryType, ItemStatus, Restaurant, RestaurantStatus, RestaurantTable
)
from restoflow.services.catalog import CatalogReader

logger = structlog.get_logger(__name__)


@dataclass
class CartLine:
    food_item_id: int
    quantity: int
    variant_id: Optional[int] = None
    addons: Sequence[int] = ()

    def __post_init__(self):
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError("quantity must be a positive integer")


@dataclass
class Cart:
    restaurant_id: int
    items: List[CartLine]
    table_id: Optional[int] = None
    customer_id: Optional[int] = None
    delivery_type: DeliveryType = DeliveryType.DINE_IN
    note: Optional[str] = None


@dataclass
class PricedAddon:
    addon_id: int
    price: Decimal


@dataclass
class PricedLine:
    food_item_id: int
    variant_id: Optional[int]
    quantity: int
    unit_price: Decimal
    addons: List[PricedAddon] = field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        """unit_price * quantity + sum of addon prices (addons are per line)"""
        return to_money(self.unit_price * self.quantity) + money_sum(a.price for a in self.addons)


@dataclass
class PricingSnapshot:
    restaurant: Restaurant
    table: Optional[RestaurantTable]
    customer_id: Optional[int]
    delivery_type: DeliveryType
    note: Optional[str]
    lines: List[PricedLine]
    currency: str

    @property
    def total_amount(self) -> Decimal:
        return money_sum(line.total_price for line in self.lines)


class PricingEngine:
    """Turns a cart into a PricingSnapshot or a validation failure"""

    def __init__(self, catalog: CatalogReader, default_currency: str = "INR"):
        self.catalog = catalog
        self.default_currency = default_currency

    async def price_cart(self, cart: Cart) -> ServiceResult:
        if not cart.items:
            return failure(ErrorCode.NO_ITEMS, "Order must contain at least one item")

        restaurant = await self.catalog.get_restaurant(cart.restaurant_id)
        if restaurant is None or restaurant.status != RestaurantStatus.ACTIVE:
            return failure(
                ErrorCode.RESTAURANT_UNAVAILABLE,
                "Restaurant is not accepting orders"
            )

        table = None
        if cart.delivery_type == DeliveryType.DINE_IN and cart.table_id is not None:
            table = await self.catalog.get_table(cart.table_id)
            if table is None or table.restaurant_id != restaurant.id:
                return failure(ErrorCode.TABLE_NOT_FOUND, f"Table {cart.table_id} not found")

        lines = []
        for cart_line in cart.items:
            item = await self.catalog.get_item(cart_line.food_item_id)
            if (
                item is None
                or item.status != ItemStatus.ACTIVE
                or item.restaurant_id != restaurant.id
            ):
                return failure(
                    ErrorCode.ITEM_UNAVAILABLE,
                    f"Food item {cart_line.food_item_id} is not available"
                )

            # Default price comes from the first variant
            unit_price = to_money(item.variants[0].price) if item.variants else ZERO
            variant_id = None
            if cart_line.variant_id is not None:
                variant = await self.catalog.get_variant(cart_line.variant_id)
                if variant is not None and variant.is_available and variant.food_item_id == item.id:
                    unit_price = to_money(variant.price)
                    variant_id = variant.id

            # Unknown or unavailable addons are dropped, not rejected
            addons = []
            for addon_id in cart_line.addons:
                addon = await self.catalog.get_addon(addon_id)
                if addon is None or not addon.is_available or addon.food_item_id != item.id:
                    logger.info(f"Dropping addon {addon_id} from item {item.id}")
                    continue
                addons.append(PricedAddon(addon_id=addon.id, price=to_money(addon.price)))

            lines.append(PricedLine(
                food_item_id=item.id,
                variant_id=variant_id,
                quantity=cart_line.quantity,
                unit_price=unit_price,
                addons=addons,
            ))

        snapshot = PricingSnapshot(
            restaurant=restaurant,
            table=table,
            customer_id=cart.customer_id,
            delivery_type=cart.delivery_type,
            note=cart.note,
            lines=lines,
            currency=restaurant.currency or self.default_currency,
        )
        logger.debug(
            f"Priced cart for restaurant {restaurant.id}",
            lines=len(lines),
            total=str(snapshot.total_amount),
        )
        return success("Cart priced", snapshot)
