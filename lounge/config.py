import os


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-prod')

    # Lounge backend
    API_BASE_URL = os.getenv('API_BASE_URL', 'https://cge-lounge-production.up.railway.app')
    API_TIMEOUT = float(os.getenv('API_TIMEOUT', '15'))

    # Paystack
    PAYSTACK_PUBLIC_KEY = os.getenv('PAYSTACK_PUBLIC_KEY', '')
    PAYSTACK_SECRET_KEY = os.getenv('PAYSTACK_SECRET_KEY', '')
    PAYSTACK_VERIFY_URL = os.getenv('PAYSTACK_VERIFY_URL', 'https://api.paystack.co/transaction/verify')

    # Redis (session cache + event channel)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379')
    USE_REDIS = os.getenv('USE_REDIS', 'false').lower() == 'true'

    # Registration submission
    REGISTRATION_MAX_ATTEMPTS = int(os.getenv('REGISTRATION_MAX_ATTEMPTS', '3'))
    REGISTRATION_RETRY_DELAY = float(os.getenv('REGISTRATION_RETRY_DELAY', '1.0'))

    # Open workflows untouched for this many seconds are closed (0 keeps them)
    WORKFLOW_IDLE_TIMEOUT = float(os.getenv('WORKFLOW_IDLE_TIMEOUT', '1800'))


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False
    USE_REDIS = True


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    USE_REDIS = False
    PAYSTACK_PUBLIC_KEY = 'pk_test_lounge'
    PAYSTACK_SECRET_KEY = ''
    REGISTRATION_RETRY_DELAY = 0.0


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
