from enum import Enum


class Role(str, Enum):
    USER = "user"
    VENDOR = "vendor"
    ADMIN = "admin"


class Capability(str, Enum):
    MANAGE_PRODUCTS = "manage_products"
    MANAGE_ANY_PRODUCT = "manage_any_product"
    MANAGE_CATEGORIES = "manage_categories"
    UPDATE_ORDERS = "update_orders"
    VIEW_ALL_ORDERS = "view_all_orders"
    CANCEL_ANY_ORDER = "cancel_any_order"
    VIEW_ANALYTICS = "view_analytics"


CAPABILITIES = {
    Role.USER: frozenset(),
    Role.VENDOR: frozenset({
        Capability.MANAGE_PRODUCTS,
        Capability.UPDATE_ORDERS,
    }),
    Role.ADMIN: frozenset(Capability),
}


def parse_role(value) -> Role:
    """Unknown or missing role claims fall back to the least privileged role."""
    try:
        return Role(value)
    except ValueError:
        return Role.USER


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in CAPABILITIES[role]
