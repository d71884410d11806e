import logging
from typing import Optional, Union

import razorpay
from razorpay.errors import SignatureVerificationError

from monetra_svc.errors import InvalidSignature

logger = logging.getLogger(__name__)


def _to_text(value: Union[str, bytes]) -> Optional[str]:
    if isinstance(value, bytes):
        try:
            return value.decode('utf-8')
        except UnicodeDecodeError:
            return None
    return value


def verify(raw_payload: Union[str, bytes], signature: str, secret: str,
           utility: Optional[razorpay.Utility] = None) -> bool:
    """
    Check a gateway signature against the payload.

    :param raw_payload: The canonical bytes the gateway signed.
    :param signature: Hex digest supplied by the caller.
    :param secret: Shared secret for this call site.
    :return: True only on an exact match.
    """
    payload = _to_text(raw_payload)
    if payload is None or not signature or not secret:
        return False
    utility = utility or razorpay.Utility()
    try:
        return bool(utility.verify_signature(payload, signature, secret))
    except (SignatureVerificationError, TypeError):
        return False


def verify_webhook_signature(body: Union[str, bytes], signature: str, webhook_secret: str) -> None:
    """
    Validate a server-to-server notification signed over the raw JSON body.

    :raises InvalidSignature: if the signature does not match.
    """
    payload = _to_text(body)
    try:
        if payload is None or not signature or not webhook_secret:
            raise SignatureVerificationError('Razorpay Signature Verification Failed')
        razorpay.Utility().verify_webhook_signature(payload, signature, webhook_secret)
    except (SignatureVerificationError, TypeError):
        logger.warning("Webhook signature verification failed")
        raise InvalidSignature("Invalid webhook signature")


def verify_payment_signature(utility: razorpay.Utility, gateway_order_id: str, payment_id: str, signature: str) -> None:
    """
    Validate the signature a client returns after checkout. The utility's
    client holds the API key secret this signature is made with.

    :raises InvalidSignature: if the signature does not match.
    """
    try:
        utility.verify_payment_signature({
            'razorpay_order_id': gateway_order_id,
            'razorpay_payment_id': payment_id,
            'razorpay_signature': signature,
        })
    except (SignatureVerificationError, TypeError):
        logger.warning(f"Payment signature verification failed for gateway order {gateway_order_id}")
        raise InvalidSignature("Invalid payment signature")
