"""Logging configuration"""

import logging
import sys
from typing import Optional

from billdesk.config import settings

HANDLER_NAME = "billdesk"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Loggers of the bill engine and its HTTP surface
APP_LOGGERS = ("billdesk", "api")


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure logging for the bill engine
    
    Handlers are attached to the root logger once; calling this again only
    changes levels. The ``billdesk`` and ``api`` loggers follow LOG_LEVEL,
    SQLAlchemy stays at WARNING unless DEBUG is on.
    
    Args:
        level: Level name overriding LOG_LEVEL
        
    Returns:
        The ``billdesk`` logger
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    
    ours = [h for h in root_logger.handlers if h.get_name() == HANDLER_NAME]
    if not ours:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.set_name(HANDLER_NAME)
        ours.append(console_handler)
        root_logger.addHandler(console_handler)
        
        if settings.LOG_FILE:
            file_handler = logging.FileHandler(settings.LOG_FILE)
            file_handler.set_name(HANDLER_NAME)
            ours.append(file_handler)
            root_logger.addHandler(file_handler)
    
    for handler in ours:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
    
    for name in APP_LOGGERS:
        logging.getLogger(name).setLevel(log_level)
    
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    
    return logging.getLogger("billdesk")
