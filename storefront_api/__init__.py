"""
Storefront Directory API

Multi-tenant retail backend: store catalogs, a public merchant directory,
orders and payments, and Google Merchant feed preparation.
"""

__version__ = "1.0.0"
