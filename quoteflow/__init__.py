"""QuoteFlow API - quotations, orders, contracts and billing for small businesses"""

__version__ = "1.0.0"
