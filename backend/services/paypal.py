"""Server-side verification of PayPal checkout orders."""

import logging

import httpx

from backend.core import config

logger = logging.getLogger(__name__)

ACCEPTED_ORDER_STATUSES = {'COMPLETED', 'APPROVED'}


class PaymentVerificationError(Exception):
    """The order could not be confirmed as paid."""


def verify_order(order_id: str, transport: httpx.BaseTransport | None = None) -> dict:
    """Confirm that ``order_id`` is paid and return the PayPal order payload."""
    if not order_id:
        raise PaymentVerificationError('Missing PayPal order ID.')
    if not config.PAYPAL_CLIENT_ID or not config.PAYPAL_SECRET:
        raise PaymentVerificationError('PayPal credentials are not configured on the server.')

    logger.info('Verifying PayPal order %s against %s', order_id, config.PAYPAL_API_BASE)

    with httpx.Client(
        base_url=config.PAYPAL_API_BASE,
        timeout=config.PAYPAL_TIMEOUT_SECONDS,
        transport=transport,
    ) as client:
        try:
            token_response = client.post(
                '/v1/oauth2/token',
                data={'grant_type': 'client_credentials'},
                auth=(config.PAYPAL_CLIENT_ID, config.PAYPAL_SECRET),
            )
        except httpx.HTTPError as exc:
            raise PaymentVerificationError('Could not reach PayPal.') from exc

        if token_response.status_code != 200:
            logger.error('PayPal token request failed: %s', token_response.text)
            raise PaymentVerificationError('Could not authenticate with PayPal.')

        access_token = token_response.json().get('access_token')

        try:
            order_response = client.get(
                f'/v2/checkout/orders/{order_id}',
                headers={'Authorization': f'Bearer {access_token}'},
            )
        except httpx.HTTPError as exc:
            raise PaymentVerificationError('Could not reach PayPal.') from exc

    order = order_response.json()
    if order_response.status_code != 200:
        logger.error('PayPal rejected order lookup for %s: %s', order_id, order)
        raise PaymentVerificationError(
            f"PayPal rejected the verification: {order.get('message', 'unknown error')}"
        )

    order_status = order.get('status')
    if order_status not in ACCEPTED_ORDER_STATUSES:
        raise PaymentVerificationError(f'Payment is not completed. Current status: {order_status}')

    return order
