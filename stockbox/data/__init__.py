"""Data files bundled with StockBox."""
