from .tenancy import Shop
from .inventory import Product
from .customers import Customer, LoyaltyAccount
from .suppliers import Supplier
from .sales import Sale, SaleItem
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .activity import ActivityLog, Notification

__all__ = [
    'Shop',
    'Product',
    'Customer', 'LoyaltyAccount',
    'Supplier',
    'Sale', 'SaleItem',
    'PurchaseOrder', 'PurchaseOrderItem',
    'ActivityLog', 'Notification',
]
