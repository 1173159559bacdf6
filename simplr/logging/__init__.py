"""
Custom logging module with task-domain log levels
"""
from simplr.logging.custom_logger import CustomLogger, get_logger
from simplr.logging.log_levels import LogLevel

__all__ = [
    'CustomLogger',
    'LogLevel',
    'get_logger',
]
