"""
Travel Kernel

Ledger core of the travel back office:
- Double-entry journal with immutable posted entries
- Chart of accounts with parent/child tree
- Base-currency conversion with a fixed rate table
- Typed errors and structured logging shared by every layer
"""

__version__ = "0.1.0"
