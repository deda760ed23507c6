"""
Spa referral reward engine entry point.
"""
import os
import sys

from app import create_app
from app.utils import get_logger

logger = get_logger('run')

# Default to production for deployed instances
config_name = os.getenv('FLASK_ENV', 'production')

try:
    app = create_app(config_name)
except RuntimeError as e:
    logger.critical(f'Referral engine failed to start ({config_name}): {e}')
    sys.exit(1)

logger.info(f"Referral engine started: config={config_name}, "
            f"database={'set' if os.getenv('DATABASE_URL') else 'NOT SET'}, "
            f"routes={len(list(app.url_map.iter_rules()))}")

if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=os.getenv('FLASK_ENV') == 'development'
    )
