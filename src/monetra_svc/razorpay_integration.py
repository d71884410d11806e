import time
import logging
from typing import Any, Dict, Optional

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError
import requests

from monetra_svc.config import Settings, get_settings
from monetra_svc.errors import ExternalServiceError
from monetra_svc.signature import verify_payment_signature

logger = logging.getLogger(__name__)

# Failures worth another attempt; anything else is a request problem on our side.
TRANSIENT_ERRORS = (
    ServerError,
    GatewayError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


class RazorpayIntegration:
    """
    This class encapsulates the integration with the Razorpay Orders API,
    including order creation with a bounded request timeout and a retry
    mechanism for transient failures.
    """

    def __init__(self, settings: Settings, client: Optional[razorpay.Client] = None, retry_delay: float = 1.0) -> None:
        if client is None:
            if not settings.razorpay_key_id or not settings.razorpay_key_secret:
                raise ExternalServiceError('Razorpay credentials (RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET) are not configured.', 500)
            client = razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
        self.client = client
        self.currency = settings.payment_currency
        self.timeout = settings.gateway_timeout_seconds
        self.max_retries = max(1, settings.gateway_max_retries)
        self.retry_delay = retry_delay

    def create_order(self, amount: int, receipt: str, notes: Dict[str, str]) -> Dict[str, Any]:
        """
        Open a payment order on Razorpay.

        :param amount: Amount in the smallest currency unit.
        :param receipt: Local reference echoed back by the gateway.
        :param notes: Metadata echoed back on payment events.
        :return: The gateway order as a dictionary.
        :raises ExternalServiceError: if the gateway rejects the order or stays unreachable.
        """
        data = {
            'amount': amount,
            'currency': self.currency,
            'receipt': receipt,
            'notes': notes,
        }
        attempt = 0
        while attempt < self.max_retries:
            try:
                order = self.client.order.create(data=data, timeout=self.timeout)
            except TRANSIENT_ERRORS as e:
                logger.error(f"Error creating order {receipt} (attempt {attempt + 1}): {e}", exc_info=True)
                attempt += 1
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)
                continue
            except BadRequestError as e:
                logger.error(f"Order {receipt} rejected by gateway: {e}", exc_info=True)
                raise ExternalServiceError('Payment gateway rejected the order.') from e
            except Exception as e:
                logger.error(f"General error during order creation for {receipt}: {e}", exc_info=True)
                raise ExternalServiceError('Payment gateway request failed.') from e

            if not isinstance(order, dict) or not order.get('id'):
                raise ExternalServiceError('Payment gateway returned an invalid order response.')
            return order
        raise ExternalServiceError('Failed to create payment order after retries.')

    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> None:
        """
        Check the signature a client returns after checkout against the key secret.

        :raises InvalidSignature: if the signature does not match.
        """
        verify_payment_signature(self.client.utility, gateway_order_id, payment_id, signature)


def get_gateway() -> RazorpayIntegration:
    return RazorpayIntegration(get_settings())
