from .tenancy import Store
from .auth import User, Staff, SessionToken, OWNER_ROLES, STAFF_ROLES
from .inventory import Product
from .sales import Sale, StaffCashier, UserCashier, CashierAttribution

__all__ = [
    'Store',
    'User', 'Staff', 'SessionToken', 'OWNER_ROLES', 'STAFF_ROLES',
    'Product',
    'Sale', 'StaffCashier', 'UserCashier', 'CashierAttribution',
]
