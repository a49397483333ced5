"""
Kitman services — modular organization of inventory and MRP operations.

    from kitman.services import StockLedger, StockQueries, StockAllocations, MaterialReturns
    from kitman.services import Requirements, Shortages, Buildability
"""

from kitman.services.allocations import StockAllocations
from kitman.services.buildability import Buildability
from kitman.services.ledger import StockLedger
from kitman.services.queries import StockQueries
from kitman.services.requirements import Requirements
from kitman.services.returns import MaterialReturns
from kitman.services.shortages import Shortages

__all__ = [
    'StockLedger',
    'StockQueries',
    'StockAllocations',
    'MaterialReturns',
    'Requirements',
    'Shortages',
    'Buildability',
]
