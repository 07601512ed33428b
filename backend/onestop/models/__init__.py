from .auth import User, SessionToken
from .inventory import Product
from .sales import Sale, SaleItem
from .credit import CreditCustomer, CreditLedgerEntry
from .kasa import ExpenseProduct, BalanceSheet

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Sale', 'SaleItem',
    'CreditCustomer', 'CreditLedgerEntry',
    'ExpenseProduct', 'BalanceSheet',
]
