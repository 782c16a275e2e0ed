import logging
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Optional

import razorpay
import requests

from app.config import settings
from app.exceptions import ExternalDependencyError

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


@dataclass
class PaymentIntent:
    intent_id: str
    amount: Decimal
    currency: str


@dataclass
class CaptureResult:
    success: bool
    transaction_id: Optional[str] = None
    payer_email: Optional[str] = None
    amount: Optional[Decimal] = None
    error: Optional[str] = None


@dataclass
class RefundResult:
    success: bool
    reference_id: Optional[str] = None
    error: Optional[str] = None


class PaymentGateway:
    """
    Razorpay: a provider-side "order" is our payment intent; the customer
    pays it in the checkout widget and we confirm and capture afterwards.

    Declines come back as results with ``success=False``. Transport and
    provider outages raise ExternalDependencyError.
    """

    def __init__(self, key_id: str, key_secret: str):
        self.key_id = key_id
        self.client = razorpay.Client(auth=(key_id, key_secret))

    def create_intent(self, *, amount: Decimal, currency: str, receipt: str, notes: dict) -> PaymentIntent:
        try:
            razorpay_order = self.client.order.create(
                {
                    "amount": to_minor_units(amount),
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes,
                }
            )
        except (razorpay.errors.BadRequestError, razorpay.errors.ServerError,
                razorpay.errors.GatewayError, requests.RequestException) as exc:
            logger.error(f"Razorpay order creation failed for {receipt}: {exc}")
            raise ExternalDependencyError("Could not start the payment, please try again")

        return PaymentIntent(intent_id=razorpay_order["id"], amount=amount, currency=currency)

    def confirm_capture(
        self,
        *,
        intent_id: str,
        payment_id: str,
        signature: str,
        amount: Decimal,
        currency: str,
    ) -> CaptureResult:
        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": intent_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError:
            return CaptureResult(success=False, error="signature_verification_failed")

        try:
            payment = self.client.payment.fetch(payment_id)
            if payment.get("status") == "authorized":
                payment = self.client.payment.capture(
                    payment_id, to_minor_units(amount), {"currency": currency}
                )
        except razorpay.errors.BadRequestError as exc:
            return CaptureResult(success=False, error=str(exc))
        except (razorpay.errors.ServerError, razorpay.errors.GatewayError,
                requests.RequestException) as exc:
            logger.error(f"Razorpay capture failed for {payment_id}: {exc}")
            raise ExternalDependencyError("Payment provider unavailable, please retry")

        if payment.get("status") != "captured":
            return CaptureResult(success=False, error=f"payment {payment.get('status')}")

        if payment.get("order_id") and payment["order_id"] != intent_id:
            return CaptureResult(success=False, error="intent_mismatch")

        return CaptureResult(
            success=True,
            transaction_id=payment["id"],
            payer_email=payment.get("email"),
            amount=Decimal(payment.get("amount", 0)) / 100,
        )

    def refund(self, *, transaction_id: str, amount: Decimal) -> RefundResult:
        try:
            refund = self.client.payment.refund(transaction_id, {"amount": to_minor_units(amount)})
        except (razorpay.errors.BadRequestError, razorpay.errors.ServerError,
                razorpay.errors.GatewayError, requests.RequestException) as exc:
            logger.error(f"Refund failed for {transaction_id}: {exc}")
            return RefundResult(success=False, error=str(exc))

        return RefundResult(success=True, reference_id=refund.get("id"))


@lru_cache
def _gateway() -> PaymentGateway:
    return PaymentGateway(settings.razorpay_key_id, settings.razorpay_key_secret)


def get_payment_gateway() -> PaymentGateway:
    return _gateway()
