"""
Logging entry point for application code.

Modules import get_logger / should_sample / hash_ip from here; the structlog
setup itself lives in utils.logging_config and runs on first import.
"""

from utils.logger import get_logger, hash_ip, should_sample

__all__ = ["get_logger", "hash_ip", "should_sample"]
