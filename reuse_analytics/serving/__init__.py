"""
Serving Module
"""
from .redis_client import init_redis, close_redis
from .services import Services, build_services

__all__ = [
    "init_redis",
    "close_redis",
    "Services",
    "build_services",
]
