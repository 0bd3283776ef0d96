"""
                Pizza Orders

Backend for a pizza ordering app: catalog-backed carts turned into
orders with transactional stock reconciliation, seller-side status
management and post-delivery reviews.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
