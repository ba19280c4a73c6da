from .catalog import UOM, UOMConversion, Product, Location
from .inventory import StockLevel, StockMovement, MOVEMENT_TYPES
from .adjustments import Procurement, Disposal
from .sales import Sale, SaleItem
from .counts import StockCount, StockCountItem
from .documents import DocumentSequence, AuditTrail

__all__ = [
    'UOM', 'UOMConversion', 'Product', 'Location',
    'StockLevel', 'StockMovement', 'MOVEMENT_TYPES',
    'Procurement', 'Disposal',
    'Sale', 'SaleItem',
    'StockCount', 'StockCountItem',
    'DocumentSequence', 'AuditTrail',
]
