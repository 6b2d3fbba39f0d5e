"""
Logging configuration for the orbit pipeline host.

The library modules only create module-level loggers; the host application
calls setup_logging() once at startup.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# Chatty third-party loggers that are capped at WARNING
NOISY_LOGGERS = ('urllib3', 'requests')


def setup_logging(log_level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure root logging for a host embedding the pipeline.
    
    Args:
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
        log_file: Optional log file path (parent directories are created)
    
    Returns:
        The configured root logger
    """
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    
    # Replace handlers so repeated calls don't duplicate output
    root_logger.handlers = []
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    
    logging.info(f"Logging configured: level={logging.getLevelName(level)}, file={log_file}")
    return root_logger
