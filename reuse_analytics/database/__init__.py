"""
Database Module
"""
from .connection import init_database, close_database, get_session_factory
from .models import Base
from .repository import OrderFilters, OrderStore

__all__ = [
    "init_database",
    "close_database",
    "get_session_factory",
    "Base",
    "OrderFilters",
    "OrderStore",
]
