"""
Order sources for the roster system.
"""

from .order_repository import OrderRepository
from .rest_client import WooCommerceOrderClient

__all__ = ['OrderRepository', 'WooCommerceOrderClient']
