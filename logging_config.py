"""Centralized Logging Configuration for Retirarr"""
import os
import logging
from logging.handlers import RotatingFileHandler

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
VALID_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
if LOG_LEVEL not in VALID_LEVELS:
    LOG_LEVEL = 'INFO'

LOG_LEVEL_INT = getattr(logging, LOG_LEVEL)
LOG_DIR = os.getenv('LOG_DIR', os.path.join(os.getcwd(), 'logs'))
os.makedirs(LOG_DIR, exist_ok=True)

MAIN_LOG = os.path.join(LOG_DIR, 'retirarr.log')
CLEANUP_LOG = os.path.join(LOG_DIR, 'cleanup.log')

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
CLEANUP_FORMAT = '%(asctime)s - CLEANUP - %(levelname)s - %(message)s'


def setup_main_logger(name='retirarr'):
    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL_INT)
    logger.handlers.clear()

    file_handler = RotatingFileHandler(MAIN_LOG, maxBytes=10*1024*1024, backupCount=5, encoding='utf-8')
    file_handler.setLevel(LOG_LEVEL_INT)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(max(LOG_LEVEL_INT, logging.INFO))
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.propagate = False
    return logger


def setup_cleanup_logger():
    """Cycle summaries go to their own file as well as the main log and console."""
    cleanup_logger = logging.getLogger('cleanup')
    cleanup_logger.setLevel(logging.INFO)
    cleanup_logger.handlers.clear()
    cleanup_logger.propagate = False

    cleanup_file_handler = RotatingFileHandler(CLEANUP_LOG, maxBytes=5*1024*1024, backupCount=5, encoding='utf-8')
    cleanup_file_handler.setLevel(logging.INFO)
    cleanup_file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    main_file_handler = RotatingFileHandler(MAIN_LOG, maxBytes=10*1024*1024, backupCount=5, encoding='utf-8')
    main_file_handler.setLevel(logging.INFO)
    main_file_handler.setFormatter(logging.Formatter(CLEANUP_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(CLEANUP_FORMAT))

    cleanup_logger.addHandler(cleanup_file_handler)
    cleanup_logger.addHandler(main_file_handler)
    cleanup_logger.addHandler(console_handler)
    return cleanup_logger


def setup_module_logging():
    """Route module loggers (logging.getLogger(__name__)) through the main handlers."""
    root = logging.getLogger()
    root.setLevel(LOG_LEVEL_INT)
    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        for handler in main_logger.handlers:
            root.addHandler(handler)


main_logger = setup_main_logger()
cleanup_logger = setup_cleanup_logger()
