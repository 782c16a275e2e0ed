"""design store schema

Revision ID: 5a1c0e7d2b94
Revises:
Create Date: 2026-10-18 10:12:41.118305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5a1c0e7d2b94'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ORDER_STATUS = sa.Enum(
    "pending", "processing", "awaiting_customization", "under_customization",
    "completed", "cancelled", "refunded",
    name="orderstatus",
)
PAYMENT_STATUS = sa.Enum("pending", "paid", "failed", "refunded", "free", name="paymentstatus")
RECIPIENT_ROLE = sa.Enum("admin", "customer", name="recipientrole")
NOTIFICATION_CHANNEL = sa.Enum("email", "system", name="notificationchannel")
NOTIFICATION_STATUS = sa.Enum("sent", "failed", name="notificationstatus")

MONEY = sa.Numeric(10, 2)


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="user"),
        sa.Column("can_login", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("customization_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_product_slug", "product", ["slug"], unique=True)

    op.create_table(
        "order",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(), nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("customer_email", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("customer_notes", sa.String(), nullable=True),
        sa.Column("subtotal", MONEY, nullable=False),
        sa.Column("total_discount", MONEY, nullable=False),
        sa.Column("final_total", MONEY, nullable=False),
        sa.Column("discount_code", sa.String(), nullable=True),
        sa.Column("payment_status", PAYMENT_STATUS, nullable=False),
        sa.Column("order_status", ORDER_STATUS, nullable=False),
        sa.Column("payment_intent_id", sa.String(), nullable=True),
        sa.Column("transaction_id", sa.String(), nullable=True),
        sa.Column("payer_email", sa.String(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("download_links", sa.JSON(), nullable=True),
        sa.Column("download_expiry", sa.DateTime(), nullable=True),
        sa.Column("customization_needed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("free_order_route", sa.String(), nullable=True),
        sa.Column("needs_reconciliation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_sent_at", sa.DateTime(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "customer_id", "idempotency_key", name="uq_order_customer_idempotency_key"
        ),
    )
    op.create_index("ix_order_order_number", "order", ["order_number"], unique=True)
    op.create_index("ix_order_idempotency_key", "order", ["idempotency_key"])
    op.create_index("ix_order_customer_id", "order", ["customer_id"])
    op.create_index("ix_order_payment_status", "order", ["payment_status"])
    op.create_index("ix_order_order_status", "order", ["order_status"])
    op.create_index("ix_order_payment_intent_id", "order", ["payment_intent_id"])
    op.create_index("ix_order_transaction_id", "order", ["transaction_id"])
    op.create_index("ix_order_created_at", "order", ["created_at"])

    op.create_table(
        "design_file",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("product.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=True),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("storage_key", sa.String(), nullable=False),
        sa.Column("file_type", sa.String(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("mime_type", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("max_downloads", sa.Integer(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("is_color_variant", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("color_variant_hex", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_design_file_product_id", "design_file", ["product_id"])
    op.create_index("ix_design_file_order_id", "design_file", ["order_id"])

    op.create_table(
        "order_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("product.id"), nullable=False),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.Column("product_slug", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("original_price", MONEY, nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False),
        sa.Column("unit_price", MONEY, nullable=False),
        sa.Column("line_total", MONEY, nullable=False),
        sa.Column("discount_code", sa.String(), nullable=True),
        sa.Column("promo_discount", MONEY, nullable=False),
        sa.Column("customization_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("has_customizations", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("customizations", sa.JSON(), nullable=True),
    )
    op.create_index("ix_order_item_order_id", "order_item", ["order_id"])

    op.create_table(
        "order_event",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False, server_default="system"),
    )

    # indexes for fast timeline queries
    op.create_index("ix_order_event_order_id", "order_event", ["order_id"])
    op.create_index("ix_order_event_event_type", "order_event", ["event_type"])

    op.create_table(
        "order_design_file",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=False),
        sa.Column("design_file_id", sa.Integer(), sa.ForeignKey("design_file.id"), nullable=False),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_downloaded_at", sa.DateTime(), nullable=True),
        sa.Column("last_downloaded_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("order_id", "design_file_id", name="uq_order_design_file"),
    )
    op.create_index("ix_order_design_file_order_id", "order_design_file", ["order_id"])
    op.create_index("ix_order_design_file_design_file_id", "order_design_file", ["design_file_id"])

    op.create_table(
        "discount_code",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("discount_type", sa.String(), nullable=False),
        sa.Column("discount_value", MONEY, nullable=False),
        sa.Column("max_discount_amount", MONEY, nullable=True),
        sa.Column("minimum_order_amount", MONEY, nullable=True),
        sa.Column("starts_at", sa.DateTime(), nullable=True),
        sa.Column("ends_at", sa.DateTime(), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_usage_limit", sa.Integer(), nullable=True),
        sa.Column("apply_to_all_products", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("product_ids", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_discount_code_code", "discount_code", ["code"], unique=True)

    op.create_table(
        "discount_usage",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("discount_code_id", sa.Integer(), sa.ForeignKey("discount_code.id"), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=False, unique=True),
        sa.Column("order_number", sa.String(), nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False),
        sa.Column("order_total", MONEY, nullable=False),
        sa.Column("customer_slot", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("used_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "discount_code_id", "customer_id", "customer_slot", name="uq_discount_usage_customer_slot"
        ),
    )
    op.create_index("ix_discount_usage_discount_code_id", "discount_usage", ["discount_code_id"])
    op.create_index("ix_discount_usage_code", "discount_usage", ["code"])
    op.create_index("ix_discount_usage_customer_id", "discount_usage", ["customer_id"])
    op.create_index("ix_discount_usage_is_active", "discount_usage", ["is_active"])

    op.create_table(
        "payment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("intent_id", sa.String(), nullable=False),
        sa.Column("txn_id", sa.String(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False, server_default="razorpay"),
        sa.Column("refund_reference", sa.String(), nullable=True),
        sa.Column("refunded_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payment_order_id", "payment", ["order_id"])
    op.create_index("ix_payment_user_id", "payment", ["user_id"])
    op.create_index("ix_payment_intent_id", "payment", ["intent_id"])
    op.create_index("ix_payment_txn_id", "payment", ["txn_id"], unique=True)

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipient_role", RECIPIENT_ROLE, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("recipient", sa.String(), nullable=True),
        sa.Column("trigger_source", sa.String(), nullable=False),
        sa.Column("related_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("channel", NOTIFICATION_CHANNEL, nullable=False),
        sa.Column("status", NOTIFICATION_STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notification_trigger_source", "notification", ["trigger_source"])
    op.create_index("ix_notification_related_id", "notification", ["related_id"])


def downgrade():
    op.drop_table("notification")
    op.drop_table("payment")
    op.drop_table("discount_usage")
    op.drop_table("discount_code")
    op.drop_table("order_design_file")
    op.drop_table("order_event")
    op.drop_table("order_item")
    op.drop_table("design_file")
    op.drop_table("order")
    op.drop_table("product")
    op.drop_table("user")

    for enum in (NOTIFICATION_STATUS, NOTIFICATION_CHANNEL, RECIPIENT_ROLE, PAYMENT_STATUS, ORDER_STATUS):
        enum.drop(op.get_bind(), checkfirst=True)
