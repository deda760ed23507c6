"""
Gunicorn configuration for the referral engine.

    gunicorn -c gunicorn.conf.py run:app
"""
import os

# Bind to the platform's PORT or default
bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Worker configuration
# Accrual idempotency lives in the database, so workers need no coordination
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = int(os.getenv('GUNICORN_TIMEOUT', '30'))
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info').lower()
capture_output = True

# Process naming
proc_name = 'referral-engine'

# Preload app for better memory usage
preload_app = True

# Graceful restart
graceful_timeout = 30


def on_starting(server):
    server.log.info('Starting referral engine server...')


def on_exit(server):
    server.log.info('Referral engine server shutting down...')
