"""
Unit tests for RBAC permission system
"""

from restoflow.core.permissions import (
    Permission,
    Role,
    get_permissions_for_role,
    has_permission,
)


def test_get_permissions_for_role():
    """Test permission retrieval for all roles"""
    # Customers place, cancel their own and pay
    customer_perms = get_permissions_for_role("Registered")
    assert Permission.ORDER_PLACE in customer_perms
    assert Permission.ORDER_CANCEL_OWN in customer_perms
    assert Permission.PAYMENT_SPLIT in customer_perms
    assert Permission.ORDER_UPDATE_STATUS not in customer_perms
    assert Permission.REALTIME_RESTAURANT_ROOM not in customer_perms

    # Kitchen moves orders but touches no money
    kitchen_perms = get_permissions_for_role("KitchenStaff")
    assert Permission.ORDER_UPDATE_STATUS in kitchen_perms
    assert Permission.REALTIME_RESTAURANT_ROOM in kitchen_perms
    assert Permission.PAYMENT_INITIATE not in kitchen_perms

    # Platform admins oversee but do not place orders
    admin_perms = get_permissions_for_role("PlatformAdmin")
    assert Permission.ORDER_PLACE not in admin_perms
    assert Permission.ORDER_VIEW in admin_perms


def test_unknown_role_has_no_permissions():
    assert get_permissions_for_role("Superuser") == set()
    assert get_permissions_for_role(None) == set()


def test_has_permission():
    """Test permission checking logic"""
    assert has_permission(Permission.ORDER_UPDATE_STATUS, Role.RESTAURANT_STAFF.value)
    assert has_permission(Permission.ORDER_PLACE, Role.GUEST.value)
    assert not has_permission(Permission.ORDER_UPDATE_STATUS, Role.GUEST.value)
    assert not has_permission(Permission.ORDER_CANCEL_OWN, Role.KITCHEN_STAFF.value)
