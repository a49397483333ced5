"""
Kitman Protocols.

Defines interfaces for external system integration.
"""

from kitman.protocols.supply import OpenSupply, SupplySource

__all__ = [
    "OpenSupply",
    "SupplySource",
]
