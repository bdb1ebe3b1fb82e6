"""Services for the StockBox import engine."""
