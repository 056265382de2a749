from shop.models.catalog import Category, Product
from shop.models.bill import Bill, BillItem, BillSequence, LoyaltyLock

__all__ = [
    "Category",
    "Product",
    "Bill",
    "BillItem",
    "BillSequence",
    "LoyaltyLock",
]
