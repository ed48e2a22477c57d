from backoffice.models.admin import Admin
from backoffice.models.catalog import Category, SubCategory, Product, ProductAttribute
from backoffice.models.cart import CartLine
from backoffice.models.billing import Invoice, InvoiceLine, InvoiceSequence
from backoffice.models.sl import SLCartLine, SLInvoice, SLInvoiceLine
from backoffice.models.store_profile import StoreProfile, StoreType

__all__ = [
    "Admin",
    "Category",
    "SubCategory",
    "Product",
    "ProductAttribute",
    "CartLine",
    "Invoice",
    "InvoiceLine",
    "InvoiceSequence",
    "SLCartLine",
    "SLInvoice",
    "SLInvoiceLine",
    "StoreProfile",
    "StoreType",
]
