from restoflow.models.restaurant import Restaurant, RestaurantStatus, RestaurantTable
from restoflow.models.menu_item import FoodItem, FoodVariant, FoodAddon, ItemStatus
from restoflow.models.order import (
    Order, OrderStatus, OrderPaymentStatus, DeliveryType,
    ORDER_TRANSITIONS, TERMINAL_STATUSES
)
from restoflow.models.order_line_item import OrderItem, OrderAddon
from restoflow.models.ticket import KitchenTicket, KitchenTicketItem, TicketStatus
from restoflow.models.payment import Payment, PaymentStatus
from restoflow.models.split_bill import SplitBill
from restoflow.models.order_history import OrderStatusHistory, OrderEvent
from restoflow.models.idempotency_key import IdempotencyKey
