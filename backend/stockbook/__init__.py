"""Inventory and billing core: products, stock transactions and invoices."""

# Expose package modules for easier imports
__all__ = [
    'config',
    'database',
    'errors',
    'exports',
    'fallback',
    'invoice',
    'main',
    'models',
    'pdf',
    'repository',
    'routes',
    'schemas',
    'stock',
    'tax',
    'utils',
]
