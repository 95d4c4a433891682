import logging
import os
import time
from typing import Callable
from flask import Flask, jsonify
import redis

from shared.state_machine import TransitionError
from .api_client import ApiClient, ApiError, SessionExpiredError
from .backend import LoungeBackend
from .config import config
from .payment import (
    PaymentGate, PaystackInline, PaymentError, PaymentConfigurationError, PaymentVerificationError
)
from .roster import ValidationError
from .session_store import SessionStore
from .workflow_registry import WorkflowRegistry

logger = logging.getLogger(__name__)


def create_app(
    config_name: str = None,
    backend_factory: Callable[[SessionStore], LoungeBackend] = None,
    payment_loader: Callable[[], PaystackInline] = None,
    sleep: Callable[[float], None] = time.sleep
) -> Flask:
    """Application factory for the registration service."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    redis_client = None
    if app.config['USE_REDIS']:
        redis_client = redis.from_url(
            app.config['REDIS_URL'],
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
    app.redis = redis_client

    if backend_factory is None:
        def backend_factory(store: SessionStore) -> LoungeBackend:
            return LoungeBackend(ApiClient(
                app.config['API_BASE_URL'],
                store,
                timeout=app.config['API_TIMEOUT']
            ))

    if payment_loader is None:
        def payment_loader() -> PaystackInline:
            return PaystackInline(
                secret_key=app.config['PAYSTACK_SECRET_KEY'],
                verify_url=app.config['PAYSTACK_VERIFY_URL'],
                timeout=app.config['API_TIMEOUT']
            )

    # Store services on app for access in routes
    app.backend_factory = backend_factory
    app.payment_gate = PaymentGate(app.config['PAYSTACK_PUBLIC_KEY'], payment_loader)
    app.registry = WorkflowRegistry(
        backend_factory,
        app.payment_gate,
        redis_client=redis_client,
        max_attempts=app.config['REGISTRATION_MAX_ATTEMPTS'],
        retry_delay=app.config['REGISTRATION_RETRY_DELAY'],
        sleep=sleep,
        idle_timeout=app.config['WORKFLOW_IDLE_TIMEOUT']
    )

    register_error_handlers(app)

    from .routes import registration, payments
    app.register_blueprint(registration.bp)
    app.register_blueprint(payments.bp)

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        redis_status = 'disabled'
        if app.redis is not None:
            try:
                app.redis.ping()
                redis_status = 'connected'
            except redis.exceptions.RedisError:
                redis_status = 'disconnected'

        return jsonify({
            'status': 'healthy' if redis_status != 'disconnected' else 'unhealthy',
            'redis': redis_status,
            'payments_configured': bool(app.config['PAYSTACK_PUBLIC_KEY']),
            'open_workflows': len(app.registry.list_workflows())
        }), 200 if redis_status != 'disconnected' else 503

    return app


def register_error_handlers(app: Flask):
    """Translate service exceptions into JSON error responses."""

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return jsonify({'error': e.message}), 400

    @app.errorhandler(TransitionError)
    def handle_transition_error(e: TransitionError):
        return jsonify({'error': e.reason}), 400

    @app.errorhandler(SessionExpiredError)
    def handle_session_expired(e: SessionExpiredError):
        return jsonify({'error': e.message, 'login_url': e.login_url}), 401

    @app.errorhandler(ApiError)
    def handle_api_error(e: ApiError):
        return jsonify({'error': e.message, 'status': e.status}), 502

    @app.errorhandler(PaymentConfigurationError)
    def handle_payment_configuration(e: PaymentConfigurationError):
        logger.error(f"Payment misconfigured: {e.message}")
        return jsonify({'error': e.message}), 503

    @app.errorhandler(PaymentVerificationError)
    def handle_payment_verification(e: PaymentVerificationError):
        return jsonify({'error': e.message, 'reference': e.reference}), 502

    @app.errorhandler(PaymentError)
    def handle_payment_error(e: PaymentError):
        return jsonify({'error': e.message, 'reference': e.reference}), 400
