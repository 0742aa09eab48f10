"""Worker for the billing queue: retries failed payments."""

import logging

from conduit.errors.exceptions import MalformedPayload
from conduit.models.enums import PaymentStatus, QueueName
from conduit.workers.base import BaseWorker
from conduit.workers.manager import RETRY_PAYMENT
from conduit.workers.queue import JobContext

logger = logging.getLogger(__name__)


class RetryPaymentWorker(BaseWorker):
    """Re-confirm a payment intent with the customer's default payment method."""

    queue_name = QueueName.BILLING
    job_kind = RETRY_PAYMENT

    async def _default_payment_method(self, customer_id: str) -> str | None:
        customer = await self.deps.billing.retrieve_customer(customer_id)
        if customer.get("deleted"):
            return None
        settings = customer.get("invoice_settings") or {}
        return settings.get("default_payment_method") or customer.get("default_source")

    async def process(self, ctx: JobContext) -> dict:
        intent_id = ctx.payload.get("paymentIntentId")
        customer_id = ctx.payload.get("customerId")
        if not intent_id or not customer_id:
            raise MalformedPayload(f"retry-payment job {ctx.job_id} needs paymentIntentId and customerId")

        intent = await self.deps.billing.retrieve_payment_intent(intent_id)
        status = intent.get("status")
        if status != PaymentStatus.REQUIRES_PAYMENT_METHOD:
            logger.info("Payment %s is %s; nothing to retry", intent_id, status)
            return {"retried": False, "status": status}

        payment_method = await self._default_payment_method(customer_id)
        options = {"payment_method": payment_method} if payment_method else {}
        confirmed = await self.deps.billing.confirm_payment_intent(intent_id, **options)
        logger.info("Payment %s re-confirmed (status=%s)", intent_id, confirmed.get("status"))
        return {"retried": True, "status": confirmed.get("status")}
