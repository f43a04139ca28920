from .establishments import Establishment, ESTABLISHMENT_TYPES
from .orders import Order, OrderItem, ORDER_STATUSES, PAYMENT_STATUSES, PAYMENT_METHODS
from .daily_sales import DailySale
from .audit import AuditEvent

__all__ = [
    'Establishment', 'ESTABLISHMENT_TYPES',
    'Order', 'OrderItem', 'ORDER_STATUSES', 'PAYMENT_STATUSES', 'PAYMENT_METHODS',
    'DailySale',
    'AuditEvent',
]
