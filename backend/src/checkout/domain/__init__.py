"""
Domain package - Core business logic with no external dependencies.

This package contains pure Python entities, validation rules and ports
that encapsulate the checkout business rules: customers, products,
deliveries and the transaction state machine.
"""
