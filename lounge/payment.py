"""
Paystack payment gate.

The inline popup is callback driven: ``setup(...)`` takes a success callback
and an ``on_close`` hook and returns a handler whose ``open_iframe()`` shows
the popup. ``PaymentGate.charge`` turns that into a Future that settles
exactly once: resolved with a PaymentResult when the provider reports a
successful transaction, or rejected with PaymentCancelledError /
PaymentFailedError.

``PaystackInline`` is the server side of the popup. ``open_iframe()`` parks
the handler under its reference so the browser can fetch the popup options,
and the browser reports the outcome back through ``complete`` or ``dismiss``.
"""
import logging
import random
import string
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional, Dict, List
import requests

logger = logging.getLogger(__name__)

PAYSTACK_VERIFY_URL = 'https://api.paystack.co/transaction/verify'

CANCELLED_MESSAGE = "Payment cancelled by user"
MISSING_KEY_MESSAGE = (
    "Paystack public key not configured. "
    "Please set PAYSTACK_PUBLIC_KEY in the service environment."
)


class PaymentError(Exception):
    def __init__(self, message: str, reference: str = None):
        self.message = message
        self.reference = reference
        super().__init__(message)


class PaymentConfigurationError(PaymentError):
    pass


class PaymentCancelledError(PaymentError):
    def __init__(self, reference: str = None):
        super().__init__(CANCELLED_MESSAGE, reference)


class PaymentFailedError(PaymentError):
    pass


class PaymentVerificationError(PaymentError):
    """The provider could not be reached to confirm a reported payment."""


@dataclass
class PaymentResult:
    reference: str
    status: str
    message: str = ''
    transaction: str = ''

    @classmethod
    def from_response(cls, response: dict) -> "PaymentResult":
        return cls(
            reference=response.get('reference') or response.get('trxref') or '',
            status=str(response.get('status') or ''),
            message=response.get('message') or '',
            transaction=str(response.get('transaction') or response.get('trans') or ''),
        )

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == 'success'

    def to_dict(self) -> dict:
        return {
            'reference': self.reference,
            'status': self.status,
            'message': self.message,
            'transaction': self.transaction,
        }


def _base36(number: int) -> str:
    alphabet = string.digits + string.ascii_lowercase
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(alphabet[rem])
    return ''.join(reversed(digits)) or '0'


def generate_reference() -> str:
    """Fresh transaction reference, e.g. TXN_1718000000000_k3j9x0q2m1z8a."""
    suffix = _base36(random.getrandbits(64))[:13]
    return f"TXN_{int(time.time() * 1000)}_{suffix}"


def custom_field(display_name: str, variable_name: str, value: str) -> dict:
    return {
        'display_name': display_name,
        'variable_name': variable_name,
        'value': value,
    }


def build_metadata(fields: List[dict], **extra) -> dict:
    metadata = {'custom_fields': fields}
    metadata.update(extra)
    return metadata


class PaystackPopup:
    """Handler returned by ``PaystackInline.setup``."""

    def __init__(self, provider: "PaystackInline", options: dict,
                 callback: Callable = None, on_close: Callable = None):
        self.provider = provider
        self.options = options
        self.callback = callback
        self.on_close = on_close

    @property
    def reference(self) -> str:
        return self.options['ref']

    def open_iframe(self):
        self.provider._register(self)


class PaystackInline:
    def __init__(self, secret_key: str = '', verify_url: str = PAYSTACK_VERIFY_URL,
                 http: requests.Session = None, timeout: float = 15):
        self.secret_key = secret_key
        self.verify_url = verify_url.rstrip('/')
        self.http = http or requests.Session()
        self.timeout = timeout
        self._pending: Dict[str, PaystackPopup] = {}
        self._lock = threading.Lock()

    def setup(self, key: str, email: str, amount: int, ref: str, metadata: dict = None,
              callback: Callable = None, on_close: Callable = None) -> PaystackPopup:
        options = {
            'key': key,
            'email': email,
            'amount': amount,
            'ref': ref,
            'metadata': metadata or {},
        }
        return PaystackPopup(self, options, callback=callback, on_close=on_close)

    def _register(self, popup: PaystackPopup):
        with self._lock:
            self._pending[popup.reference] = popup
        logger.info(f"Opened payment popup {popup.reference} for {popup.options['amount']} kobo")

    def _take(self, reference: str) -> Optional[PaystackPopup]:
        with self._lock:
            return self._pending.pop(reference, None)

    def get_pending(self, reference: str) -> Optional[dict]:
        with self._lock:
            popup = self._pending.get(reference)
        return dict(popup.options) if popup else None

    def verify(self, reference: str, expected_amount: int) -> dict:
        """Ask Paystack for the transaction's real status."""
        try:
            resp = self.http.get(
                f"{self.verify_url}/{reference}",
                headers={'Authorization': f"Bearer {self.secret_key}"},
                timeout=self.timeout
            )
            body = resp.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Failed to verify payment {reference}: {e}")
            raise PaymentVerificationError(
                "Could not confirm payment with Paystack. Please try again.", reference
            ) from e

        data = body.get('data') or {}
        status = data.get('status') or 'failed'
        message = data.get('gateway_response') or body.get('message') or ''
        if status == 'success' and data.get('amount') is not None and int(data['amount']) != int(expected_amount):
            status, message = 'failed', 'Paid amount does not match the registration total'
        return {'status': status, 'message': message, 'reference': reference}

    def complete(self, reference: str, response: dict) -> bool:
        """Browser reported the popup's success callback."""
        with self._lock:
            popup = self._pending.get(reference)
        if popup is None:
            return False

        response = dict(response or {})
        response.setdefault('reference', reference)
        if self.secret_key:
            response.update(self.verify(reference, popup.options['amount']))

        if self._take(reference) is None:
            return False
        if popup.callback:
            popup.callback(response)
        return True

    def dismiss(self, reference: str) -> bool:
        """Browser reported that the popup was closed without paying."""
        popup = self._take(reference)
        if popup is None:
            return False
        logger.info(f"Payment popup {reference} closed by user")
        if popup.on_close:
            popup.on_close()
        return True


class PaymentGate:
    """
    Charges a payer through a lazily loaded provider.

    ``loader`` builds the provider and is called at most once for the life of
    the gate, even when several charges start at the same time.
    """

    def __init__(self, public_key: str, loader: Callable[[], PaystackInline]):
        self.public_key = public_key
        self._loader = loader
        self._provider = None
        self._load_lock = threading.Lock()

    @property
    def provider(self) -> PaystackInline:
        if self._provider is None:
            with self._load_lock:
                if self._provider is None:
                    logger.debug("Loading payment provider")
                    self._provider = self._loader()
        return self._provider

    def charge(self, amount: int, payer_email: str, reference: str,
               metadata: dict = None) -> Future:
        if not self.public_key:
            raise PaymentConfigurationError(MISSING_KEY_MESSAGE, reference)
        if amount <= 0:
            raise PaymentError("Payment amount must be greater than zero", reference)
        if not payer_email or not payer_email.strip():
            raise PaymentError("A payer email address is required", reference)

        provider = self.provider
        future: Future = Future()
        settle_lock = threading.Lock()

        def settle(result: PaymentResult = None, error: Exception = None):
            with settle_lock:
                if future.done():
                    return
                if error is not None:
                    future.set_exception(error)
                else:
                    future.set_result(result)

        def on_success(response: dict):
            result = PaymentResult.from_response(response)
            if result.succeeded:
                settle(result=result)
            else:
                message = result.message or "Payment failed. Please try again."
                settle(error=PaymentFailedError(message, reference))

        def on_close():
            settle(error=PaymentCancelledError(reference))

        handler = provider.setup(
            key=self.public_key,
            email=payer_email.strip(),
            amount=amount,
            ref=reference,
            metadata=metadata,
            callback=on_success,
            on_close=on_close
        )
        try:
            handler.open_iframe()
        except Exception as e:
            logger.error(f"Could not open payment popup {reference}: {e}")
            settle(error=PaymentFailedError(str(e) or "Payment failed. Please try again.", reference))
        return future
