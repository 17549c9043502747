"""
PaymentService: M-Pesa purchase flows and the callback that grants eBook access.

Responsibilities:
- STK push for the book purchase and for the delivery fee (admin is notified first)
- Parsing the payment callback (Daraja-native or flat simulation payload)
- Minting the entitlement token and e-mailing the access link
"""
import logging
from datetime import timedelta
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from app.core.config import settings
from app.core.errors import InputValidationError
from app.entitlements.store import TokenStore
from app.schemas.payments import CallbackOut, PaymentEvent, coerce_phone
from app.services.mpesa.client import MpesaClient
from app.services.notifications.service import EmailNotifier
from app.utils.metrics import payment_callbacks_total

logger = logging.getLogger(__name__)

_PAYLOAD_FIELDS = {"payer_phone": "phone", "amount_paid": "amount", "payer_email": "email"}


def _metadata_value(items: list[dict[str, Any]], name: str) -> Any:
    for item in items:
        if isinstance(item, dict) and item.get("Name") == name:
            return item.get("Value")
    return None


def _stk_callback(payload: dict[str, Any]) -> dict[str, Any] | None:
    body = payload.get("Body")
    if not isinstance(body, dict):
        return None
    callback = body.get("stkCallback")
    return callback if isinstance(callback, dict) else None


def parse_payment_event(payload: dict[str, Any]) -> PaymentEvent | None:
    """
    Resolve payer info from either callback shape:
    - Daraja: Body.stkCallback.CallbackMetadata.Item[] with Amount / PhoneNumber (no e-mail)
    - simulation/direct: {phone, amount, email}
    Returns None when no phone number can be found. Raises InputValidationError
    when amount or e-mail has a shape that cannot be read (lists, objects).
    """
    callback = _stk_callback(payload) or {}
    metadata = callback.get("CallbackMetadata")
    if isinstance(metadata, dict):
        items = metadata.get("Item") or []
        phone = _metadata_value(items, "PhoneNumber")
        amount = _metadata_value(items, "Amount")
        email = None
    else:
        phone = payload.get("phone")
        amount = payload.get("amount")
        email = payload.get("email") or None

    phone = coerce_phone(phone)
    if not phone:
        return None
    try:
        return PaymentEvent(payer_phone=phone, amount_paid=amount, payer_email=email)
    except ValidationError as e:
        fields = sorted({_PAYLOAD_FIELDS.get(str(err["loc"][0]), "payload") for err in e.errors()})
        raise InputValidationError("Invalid callback payload", details={"fields": fields}) from e


def build_access_link(filename: str, token_id: str) -> str:
    return f"{settings.public_base_url}/api/view/{quote(filename)}?token={token_id}"


class PaymentService:
    def __init__(self, store: TokenStore, mpesa: MpesaClient, notifier: EmailNotifier):
        self.store = store
        self.mpesa = mpesa
        self.notifier = notifier

    # ------------------------------------------------------------------
    # STK push
    # ------------------------------------------------------------------

    def initiate_purchase(self, phone: str | None, amount: int | float | None, email: str | None = None) -> dict:
        """OAuth, admin e-mail, then STK push. Returns the provider response unchanged."""
        token = self.mpesa.get_access_token()
        self.notifier.send_stk_initiated(phone, amount, email)
        return self.mpesa.stk_push(
            phone,
            amount,
            account_reference=settings.mpesa_account_reference,
            transaction_desc=settings.mpesa_transaction_desc,
            access_token=token,
        )

    def initiate_delivery(
        self,
        phone: str | None,
        transaction_code: str | None,
        address: str | None,
        amount: int | float | None,
    ) -> dict:
        if not phone or not transaction_code or not address or not amount:
            raise InputValidationError("Missing required fields")
        token = self.mpesa.get_access_token()
        self.notifier.send_delivery_initiated(phone, amount, address)
        result = self.mpesa.stk_push(
            phone,
            amount,
            account_reference=settings.mpesa_delivery_account_reference,
            transaction_desc=f"Delivery Fee for {address}",
            access_token=token,
        )
        logger.info("delivery_stk_push_sent", extra={"phone": phone, "amount": amount})
        return result

    # ------------------------------------------------------------------
    # Callback -> entitlement
    # ------------------------------------------------------------------

    def handle_callback(self, payload: dict[str, Any]) -> CallbackOut:
        callback = _stk_callback(payload)
        if callback is not None and callback.get("CallbackMetadata") is None:
            result_code = callback.get("ResultCode")
            if result_code not in (None, 0, "0"):
                # Payer cancelled or the charge failed: nothing to grant
                payment_callbacks_total.labels(outcome="cancelled").inc()
                logger.info("payment_not_completed", extra={"reason": callback.get("ResultDesc")})
                return CallbackOut(
                    success=False,
                    message=str(callback.get("ResultDesc") or "Payment was not completed."),
                    ebook_link=None,
                )

        try:
            event = parse_payment_event(payload)
        except InputValidationError:
            payment_callbacks_total.labels(outcome="rejected").inc()
            raise
        if event is None:
            payment_callbacks_total.labels(outcome="rejected").inc()
            raise InputValidationError("No phone in callback")

        filename = settings.ebook_filename
        ttl = timedelta(minutes=settings.entitlement_ttl_minutes)
        token_id = self.store.issue(filename, ttl)
        link = build_access_link(filename, token_id)
        logger.info(
            "payment_confirmed",
            extra={"phone": event.payer_phone, "amount": event.amount_paid, "content_id": filename},
        )

        self.notifier.send_purchase_admin(event, link)
        if event.payer_email:
            self.notifier.send_purchase_buyer(event.payer_email, link, settings.entitlement_ttl_minutes)

        payment_callbacks_total.labels(outcome="granted").inc()
        return CallbackOut(
            success=True,
            message="Payment processed successfully.",
            ebook_link=link,
        )
