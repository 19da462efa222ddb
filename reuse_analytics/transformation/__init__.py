"""
Data Transformation Module
"""
from .cleaners import OrderCleaner, OrderRecord
from .geography import GeographicReconciler, GeoTriple, reconcile

__all__ = [
    "OrderCleaner",
    "OrderRecord",
    "GeographicReconciler",
    "GeoTriple",
    "reconcile",
]
