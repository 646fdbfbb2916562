from prometheus_client import Counter, Histogram

# Business Metrics
storefront_orders_total = Counter(
    "storefront_orders_total",
    "Order placement attempts",
    ["outcome"]  # Labels: 'placed', 'blocked', 'rejected', 'failed'
)

storefront_order_placement_seconds = Histogram(
    "storefront_order_placement_seconds",
    "Time spent validating, pricing and persisting an order"
)

storefront_notifications_total = Counter(
    "storefront_notifications_total",
    "Post-order notification tasks",
    ["channel", "outcome"]  # channel: 'sms', 'email', 'conversion'; outcome: 'sent', 'skipped', 'failed'
)

storefront_courier_lookups_total = Counter(
    "storefront_courier_lookups_total",
    "Third-party courier reputation lookups",
    ["outcome"]  # 'ok', 'rate_limited', 'unauthorized', 'blocked', 'timeout', 'error', 'not_configured'
)

storefront_risk_cache_total = Counter(
    "storefront_risk_cache_total",
    "Risk signal cache lookups",
    ["result"]  # 'hit', 'miss'
)
