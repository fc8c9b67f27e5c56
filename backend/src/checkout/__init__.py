"""
Checkout backend - product catalog, transactions and card payments.
"""

__version__ = "0.1.0"
