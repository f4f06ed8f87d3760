"""
Authorization policy.

Every API operation has a dotted name ("products.create"). Any authenticated
actor may run an operation unless it is listed in ADMIN_OPERATIONS.
"""

from core.security import Actor

ADMIN_OPERATIONS = frozenset(
    {
        "products.create",
        "products.update",
        "products.delete",
        "categories.create",
        "suppliers.create",
        "suppliers.update",
        "purchase_orders.create",
        "purchase_orders.update",
        "purchase_orders.add_item",
        "purchase_orders.receive",
        "alerts.create",
        "alerts.resolve",
        "alerts.scan",
        "alerts.process",
        "notifications.list_pending",
        "notifications.update_status",
        "notifications.retry",
        "warehouses.create",
        "locations.create",
        "forecasts.create",
        "forecasts.suggest_order",
    }
)


def is_allowed(actor: Actor | None, operation: str) -> bool:
    """Return True when `actor` may perform `operation`."""
    if actor is None:
        return False
    if operation in ADMIN_OPERATIONS:
        return actor.is_admin
    return True
