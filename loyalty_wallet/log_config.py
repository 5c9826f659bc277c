# loyalty_wallet/log_config.py

"""
Logging configuration for the wallet service.

Production uses a dictConfig setup with a console handler and rotating
file handlers; tests get a plain console handler so nothing is written
to disk.
"""

import os
import logging
import logging.config
import logging.handlers

LOG_DIR = os.getenv('WALLET_LOG_DIR', 'logs')

LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,

    'formatters': {
        'detailed': {
            'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s'
        },
        'simple': {
            'format': '%(asctime)s [%(levelname)s] %(message)s'
        },
        'focused': {
            'format': '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
        }
    },

    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
            'level': 'INFO',
        },
        'wallet_file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': os.path.join(LOG_DIR, 'wallet.log'),
            'formatter': 'detailed',
            'level': 'INFO',
            'maxBytes': 10485760,   # 10MB
            'backupCount': 3,
            'encoding': 'utf-8'
        },
        'signing_file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': os.path.join(LOG_DIR, 'signing.log'),
            'formatter': 'focused',
            'level': 'WARNING',
            'maxBytes': 5242880,    # 5MB
            'backupCount': 2,
            'encoding': 'utf-8'
        },
    },

    'loggers': {
        'loyalty_wallet': {
            'handlers': ['console', 'wallet_file'],
            'level': 'INFO',
            'propagate': False
        },
        'loyalty_wallet.bundle': {
            'handlers': ['signing_file'],
            'level': 'INFO',
            'propagate': True
        },
        'loyalty_wallet.crypto': {
            'handlers': ['signing_file'],
            'level': 'INFO',
            'propagate': True
        },
        'urllib3': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False
        },
        'werkzeug': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False
        },
    },

    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    }
}


def init_logging(app=None, testing: bool = False):
    """
    Initialize logging for the wallet service.

    Args:
        app: Optional Flask application instance.
        testing: Force the console-only configuration.
    """
    if testing or (app is not None and app.config.get('TESTING')):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
        ))

        root_logger = logging.getLogger()
        root_logger.handlers = [console_handler]
        root_logger.setLevel(logging.WARNING)

        if app is not None:
            app.logger.handlers = [console_handler]
            app.logger.setLevel(logging.DEBUG if app.debug else logging.INFO)
        return

    os.makedirs(LOG_DIR, exist_ok=True)
    logging.config.dictConfig(LOGGING_CONFIG)
    if app is not None:
        app.logger.setLevel(logging.INFO if app.debug else logging.WARNING)
