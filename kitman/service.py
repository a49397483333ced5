"""
Kitman Service — The public interface for inventory and MRP operations.

Usage:
    from kitman import inventory, mrp, KitError

    inventory.receive(500, resistor, reason='PO 1042')
    inventory.allocate(120, resistor, order)
    inventory.pick(order)
    inventory.issue(order)

    mrp.shortages()
    mrp.order_buildability()
"""

from kitman.services.allocations import StockAllocations
from kitman.services.buildability import Buildability
from kitman.services.ledger import StockLedger
from kitman.services.queries import StockQueries
from kitman.services.requirements import Requirements
from kitman.services.returns import MaterialReturns
from kitman.services.shortages import ShortageAnalysis, Shortages


class Inventory(StockLedger, StockQueries, StockAllocations, MaterialReturns):
    """
    Single interface for stock and allocation operations.

    Parameter convention: (quantity, material, ...)
    Follows natural language: "Allocate 120 resistors to order 5521"

    IMPORTANT: All state-changing methods use atomic transactions
    with row locks on the material or allocation. See each method's docstring.
    """

    # on_hand() comes from StockLedger, available() from StockQueries


class Mrp(Requirements, Shortages, Buildability):
    """
    Single interface for requirement, shortage and buildability reports.

    Each report call takes its own snapshot. Use analysis() to share one
    snapshot across several views:

        analysis = mrp.analysis()
        mrp.shortages(analysis)
        mrp.order_buildability(analysis)
    """

    @classmethod
    def analysis(cls) -> ShortageAnalysis:
        return ShortageAnalysis.build()
