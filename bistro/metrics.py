from prometheus_client import Counter

ORDERS_CREATED = Counter(
    "orders_created_total",
    "Orders accepted by the order service",
    ["mode", "order_type"],  # mode: database | fallback
)

STATUS_TRANSITIONS = Counter(
    "order_status_transitions_total",
    "Accepted order status changes",
    ["mode", "status"],
)

FALLBACK_ACTIVATIONS = Counter(
    "fallback_activations_total",
    "Operations served from the in-memory fallback",
    ["operation"],
)
