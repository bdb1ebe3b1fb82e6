"""StockBox bulk import engine.

Turns a spreadsheet-like grid of pasted or typed rows into validated,
rate-limited, cancelable create-operations against the inventory API, with
optional enrichment from the company registry.
"""

__version__ = "0.1.0"
