"""Command line tools for StockBox."""
