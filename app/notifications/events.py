from enum import Enum


class NotificationKind(str, Enum):
    ORDER_COMPLETED = "order_completed"
    ORDER_PROCESSING = "order_processing"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_REFUNDED = "order_refunded"
    ADMIN_NEW_ORDER = "admin_new_order"
    FREE_ORDER_NEEDS_REVIEW = "free_order_needs_review"
    FREE_ORDER_MISSING_CUSTOMIZATION = "free_order_missing_customization"
    CUSTOM_MESSAGE = "custom_message"
