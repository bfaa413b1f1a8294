from .parties import Counterparty
from .ledger import Transaction, TransactionItem
from .inventory import Product, StockAdjustment
from .checks import CheckNote

__all__ = [
    'Counterparty',
    'Transaction', 'TransactionItem',
    'Product', 'StockAdjustment',
    'CheckNote',
]
