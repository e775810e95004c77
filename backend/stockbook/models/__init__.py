from .catalog import Location, Contact, Product, VariationGroup, ProductVariation
from .stock import StockEntry
from .orders import Order, OrderLine, PackingRecord, PackingPieceRecord, OrderCharge, OrderPayment
from .accounting import FinancialAccount, AccountTransaction

__all__ = [
    'Location', 'Contact', 'Product', 'VariationGroup', 'ProductVariation',
    'StockEntry',
    'Order', 'OrderLine', 'PackingRecord', 'PackingPieceRecord', 'OrderCharge', 'OrderPayment',
    'FinancialAccount', 'AccountTransaction',
]
