from .catalog import Medicine, Cosmetic
from .people import Salesman, Customer
from .sales import Sale, SaleItem
from .returns import Return

__all__ = [
    'Medicine', 'Cosmetic',
    'Salesman', 'Customer',
    'Sale', 'SaleItem',
    'Return',
]
