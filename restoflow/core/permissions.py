"""
RBAC (Role-Based Access Control) permission system
"""

from enum import Enum
from typing import Set


class Role(str, Enum):
    # Staff / users
    PLATFORM_ADMIN = "PlatformAdmin"
    RESTAURANT_ADMIN = "RestaurantAdmin"
    RESTAURANT_STAFF = "RestaurantStaff"
    KITCHEN_STAFF = "KitchenStaff"
    # Customers
    GUEST = "Guest"
    REGISTERED = "Registered"


class Permission(str, Enum):
    """Permission definitions"""
    ORDER_PLACE = "order:place"
    ORDER_VIEW = "order:view"
    ORDER_UPDATE_STATUS = "order:update_status"
    ORDER_CANCEL_OWN = "order:cancel_own"

    PAYMENT_INITIATE = "payment:initiate"
    PAYMENT_SPLIT = "payment:split"

    # Membership of restaurant_<id> rooms on the realtime channel
    REALTIME_RESTAURANT_ROOM = "realtime:restaurant_room"


_CUSTOMER_PERMISSIONS = {
    Permission.ORDER_PLACE,
    Permission.ORDER_VIEW,
    Permission.ORDER_CANCEL_OWN,
    Permission.PAYMENT_INITIATE,
    Permission.PAYMENT_SPLIT,
}

# Role permission mapping
ROLE_PERMISSIONS = {
    Role.PLATFORM_ADMIN: {
        Permission.ORDER_VIEW,
        Permission.ORDER_UPDATE_STATUS,
        Permission.PAYMENT_INITIATE,
        Permission.PAYMENT_SPLIT,
        Permission.REALTIME_RESTAURANT_ROOM,
    },
    Role.RESTAURANT_ADMIN: {
        Permission.ORDER_PLACE,
        Permission.ORDER_VIEW,
        Permission.ORDER_UPDATE_STATUS,
        Permission.PAYMENT_INITIATE,
        Permission.PAYMENT_SPLIT,
        Permission.REALTIME_RESTAURANT_ROOM,
    },
    Role.RESTAURANT_STAFF: {
        Permission.ORDER_PLACE,
        Permission.ORDER_VIEW,
        Permission.ORDER_UPDATE_STATUS,
        Permission.PAYMENT_INITIATE,
        Permission.PAYMENT_SPLIT,
        Permission.REALTIME_RESTAURANT_ROOM,
    },
    Role.KITCHEN_STAFF: {
        # Kitchen screens view and move orders, nothing financial
        Permission.ORDER_VIEW,
        Permission.ORDER_UPDATE_STATUS,
        Permission.REALTIME_RESTAURANT_ROOM,
    },
    Role.GUEST: _CUSTOMER_PERMISSIONS,
    Role.REGISTERED: _CUSTOMER_PERMISSIONS,
}

STAFF_ROLES = frozenset({
    Role.PLATFORM_ADMIN,
    Role.RESTAURANT_ADMIN,
    Role.RESTAURANT_STAFF,
    Role.KITCHEN_STAFF,
})
CUSTOMER_ROLES = frozenset({Role.GUEST, Role.REGISTERED})


def get_permissions_for_role(role: str) -> Set[Permission]:
    """Get permissions for a given role"""
    try:
        return ROLE_PERMISSIONS.get(Role(role), set())
    except ValueError:
        return set()


def has_permission(required_permission: Permission, role: str) -> bool:
    """Check if role has required permission"""
    return required_permission in get_permissions_for_role(role)
