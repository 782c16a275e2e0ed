from app.notifications.events import NotificationKind
from app.notifications.channels import Channel


NOTIFICATION_RULES = {

    NotificationKind.ORDER_COMPLETED: {
        Channel.EMAIL_USER: True,
        Channel.INAPP_ADMIN: True,
    },

    NotificationKind.ORDER_PROCESSING: {
        Channel.EMAIL_USER: True,
    },

    NotificationKind.ORDER_CANCELLED: {
        Channel.EMAIL_USER: True,
        Channel.INAPP_ADMIN: True,
        Channel.EMAIL_ADMIN: True,
    },

    NotificationKind.ORDER_REFUNDED: {
        Channel.EMAIL_USER: True,
        Channel.INAPP_ADMIN: True,
    },

    NotificationKind.ADMIN_NEW_ORDER: {
        Channel.INAPP_ADMIN: True,
        Channel.EMAIL_ADMIN: True,
    },

    NotificationKind.FREE_ORDER_NEEDS_REVIEW: {
        Channel.INAPP_ADMIN: True,
        Channel.EMAIL_ADMIN: True,
    },

    NotificationKind.FREE_ORDER_MISSING_CUSTOMIZATION: {
        Channel.INAPP_ADMIN: True,
        Channel.EMAIL_ADMIN: True,
    },

    NotificationKind.CUSTOM_MESSAGE: {
        Channel.EMAIL_USER: True,
    },

}


# (template, subject) per kind; subjects are formatted with the payload
USER_TEMPLATES = {
    NotificationKind.ORDER_COMPLETED: (
        "user_emails/order_completed.html",
        "Your files are ready - order {order_number}",
    ),
    NotificationKind.ORDER_PROCESSING: (
        "user_emails/order_processing.html",
        "We received your order {order_number}",
    ),
    NotificationKind.ORDER_CANCELLED: (
        "user_emails/order_cancelled.html",
        "Order {order_number} cancelled",
    ),
    NotificationKind.ORDER_REFUNDED: (
        "user_emails/order_refunded.html",
        "Refund for order {order_number}",
    ),
    NotificationKind.CUSTOM_MESSAGE: (
        "user_emails/custom_message.html",
        "{subject}",
    ),
}

ADMIN_TEMPLATES = {
    NotificationKind.ORDER_CANCELLED: (
        "admin_emails/order_cancelled.html",
        "Order cancelled - {order_number}",
    ),
    NotificationKind.ADMIN_NEW_ORDER: (
        "admin_emails/new_order.html",
        "New order - {order_number}",
    ),
    NotificationKind.FREE_ORDER_NEEDS_REVIEW: (
        "admin_emails/free_order_needs_review.html",
        "Free order needs review - {order_number}",
    ),
    NotificationKind.FREE_ORDER_MISSING_CUSTOMIZATION: (
        "admin_emails/free_order_missing_customization.html",
        "Free order missing customization data - {order_number}",
    ),
}

ADMIN_TITLES = {
    NotificationKind.ORDER_COMPLETED: "Order Completed",
    NotificationKind.ORDER_CANCELLED: "Order Cancelled",
    NotificationKind.ORDER_REFUNDED: "Order Refunded",
    NotificationKind.ADMIN_NEW_ORDER: "New Order",
    NotificationKind.FREE_ORDER_NEEDS_REVIEW: "Free Order Needs Review",
    NotificationKind.FREE_ORDER_MISSING_CUSTOMIZATION: "Free Order Missing Customization",
}
