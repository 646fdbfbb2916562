from .setup import setup_observability
from .metrics import (
    storefront_orders_total,
    storefront_order_placement_seconds,
    storefront_notifications_total,
    storefront_courier_lookups_total,
    storefront_risk_cache_total
)
