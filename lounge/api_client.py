import logging
from typing import Any
import requests

from .session_store import SessionStore

logger = logging.getLogger(__name__)

LOGIN_URL = '/auth/login'

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."

STATUS_MESSAGES = {
    400: "Bad request. Please check your input.",
    401: SESSION_EXPIRED_MESSAGE,
    403: "You don't have permission to access this resource.",
    404: "The requested resource was not found.",
    409: "Conflict. The resource already exists.",
    422: "Validation error. Please check your input.",
    429: "Too many requests. Please try again later.",
    500: "Server error. Please try again later.",
    502: "Bad gateway. Please try again later.",
    503: "Service unavailable. Please try again later.",
}

# Statuses whose backend message is shown instead of the canned one
PASSTHROUGH_STATUSES = {400, 409, 422}


class ApiError(Exception):
    def __init__(self, message: str, status: int = None):
        self.message = message
        self.status = status
        super().__init__(message)


class SessionExpiredError(ApiError):
    def __init__(self):
        super().__init__(SESSION_EXPIRED_MESSAGE, status=401)
        self.login_url = LOGIN_URL


def error_message(status: int, message: str = None) -> str:
    """Map an HTTP status to the message shown to the user."""
    if status in PASSTHROUGH_STATUSES and message:
        return message
    if status in STATUS_MESSAGES:
        return STATUS_MESSAGES[status]
    return message or "An unexpected error occurred."


class ApiClient:
    """
    JSON client for the lounge backend.

    The bearer token is read from the session store on every request; a 401
    response clears the store and raises SessionExpiredError so callers can
    send the user back to the login page.
    """

    def __init__(
        self,
        base_url: str,
        session_store: SessionStore,
        timeout: float = 15,
        http: requests.Session = None
    ):
        self.base_url = base_url.rstrip('/')
        self.session_store = session_store
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self) -> dict:
        headers = {'Content-Type': 'application/json'}
        token = self.session_store.get_token()
        if token and token.strip():
            token = token.strip()
            headers['Authorization'] = token if token.startswith('Bearer ') else f"Bearer {token}"
        return headers

    @staticmethod
    def _parse_body(response: requests.Response) -> Any:
        content_type = response.headers.get('content-type', '')
        if 'application/json' in content_type:
            try:
                return response.json()
            except ValueError:
                return {}
        text = response.text
        try:
            return response.json()
        except ValueError:
            return {'message': text, 'success': True}

    def _handle_unauthorized(self):
        logger.info("Backend returned 401, clearing cached session")
        self.session_store.clear()

    def request(self, method: str, endpoint: str, json: Any = None, params: dict = None) -> Any:
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.http.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise ApiError(NETWORK_ERROR_MESSAGE) from e

        data = self._parse_body(response)

        if not response.ok:
            if response.status_code == 401:
                self._handle_unauthorized()
                raise SessionExpiredError()

            message = data.get('message') if isinstance(data, dict) else None
            if isinstance(message, list):
                message = '; '.join(str(m) for m in message)
            logger.debug(f"{method} {endpoint} -> {response.status_code}: {message}")
            raise ApiError(error_message(response.status_code, message), status=response.status_code)

        return data

    def get(self, endpoint: str, params: dict = None) -> Any:
        return self.request('GET', endpoint, params=params)

    def post(self, endpoint: str, data: Any) -> Any:
        return self.request('POST', endpoint, json=data)
