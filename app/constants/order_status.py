from enum import Enum


class OrderStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    awaiting_customization = "awaiting_customization"
    under_customization = "under_customization"
    completed = "completed"
    cancelled = "cancelled"
    refunded = "refunded"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    refunded = "refunded"
    free = "free"


ALLOWED_TRANSITIONS = {
    OrderStatus.pending: [
        OrderStatus.processing,
        OrderStatus.awaiting_customization,
        OrderStatus.under_customization,
        OrderStatus.cancelled,
    ],
    OrderStatus.processing: [
        OrderStatus.completed,
        OrderStatus.awaiting_customization,
        OrderStatus.under_customization,
        OrderStatus.cancelled,
        OrderStatus.refunded,
    ],
    OrderStatus.awaiting_customization: [
        OrderStatus.under_customization,
        OrderStatus.completed,
        OrderStatus.cancelled,
        OrderStatus.refunded,
    ],
    OrderStatus.under_customization: [
        OrderStatus.completed,
        OrderStatus.cancelled,
        OrderStatus.refunded,
    ],
    OrderStatus.completed: [],
    OrderStatus.cancelled: [],
    OrderStatus.refunded: [],
}

PAYMENT_TRANSITIONS = {
    PaymentStatus.pending: [PaymentStatus.paid, PaymentStatus.failed, PaymentStatus.free],
    PaymentStatus.failed: [PaymentStatus.pending, PaymentStatus.paid],
    PaymentStatus.paid: [PaymentStatus.refunded],
    PaymentStatus.free: [],
    PaymentStatus.refunded: [],
}

TERMINAL_ORDER_STATUSES = {
    OrderStatus.completed,
    OrderStatus.cancelled,
    OrderStatus.refunded,
}

# Orders whose grants may be downloaded
FULFILLMENT_ELIGIBLE_STATUSES = {
    OrderStatus.completed,
    OrderStatus.processing,
    OrderStatus.awaiting_customization,
    OrderStatus.under_customization,
}

SETTLED_PAYMENT_STATUSES = {PaymentStatus.paid, PaymentStatus.free}
