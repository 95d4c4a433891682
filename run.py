#!/usr/bin/env python3
"""
Entry point for the Lounge Registration Service.

Usage:
    python run.py

Environment Variables:
    FLASK_ENV: development, production or testing (default: development)
    PORT: Port to run on (default: 5000)
    API_BASE_URL: Lounge backend base URL
    PAYSTACK_PUBLIC_KEY: Paystack public key used by the payment popup
    PAYSTACK_SECRET_KEY: Optional; enables server-side payment verification
"""
import logging
import os


def run_service():
    """Run the registration service."""
    from lounge.app import create_app

    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    app = create_app()
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV', 'development') == 'development'

    print(f"Starting Lounge Registration Service on port {port}...")
    app.run(host='0.0.0.0', port=port, debug=debug, threaded=True)


if __name__ == '__main__':
    run_service()
