from .tenancy import Restaurant, User
from .stock import StockLevelMixin
from .catalog import Item, OptionGroup, Option, ItemVariant
from .audits import ItemStockAudit, OptionStockAudit, VariantStockAudit
from .orders import Order, OrderItem, OrderSequence

__all__ = [
    'Restaurant', 'User',
    'StockLevelMixin',
    'Item', 'OptionGroup', 'Option', 'ItemVariant',
    'ItemStockAudit', 'OptionStockAudit', 'VariantStockAudit',
    'Order', 'OrderItem', 'OrderSequence',
]
