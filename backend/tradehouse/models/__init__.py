from .inventory import Item
from .parties import (
    Customer,
    Vendor,
    Broker,
    Commissioner,
    BrokerPayment,
    CommissionerPayment,
    PAYMENT_METHODS,
)
from .invoices import (
    CustomerInvoice,
    CustomerInvoiceLine,
    CustomerInvoicePayment,
    VendorInvoice,
    VendorInvoiceLine,
    VendorInvoicePayment,
    CommissionerInvoice,
    CommissionerInvoiceLine,
    InvoiceSequence,
    STORAGE_SHOP,
    STORAGE_COLD,
    STORAGE_TYPES,
)
from . import events  # noqa: F401

__all__ = [
    'Item',
    'Customer', 'Vendor', 'Broker', 'Commissioner',
    'BrokerPayment', 'CommissionerPayment', 'PAYMENT_METHODS',
    'CustomerInvoice', 'CustomerInvoiceLine', 'CustomerInvoicePayment',
    'VendorInvoice', 'VendorInvoiceLine', 'VendorInvoicePayment',
    'CommissionerInvoice', 'CommissionerInvoiceLine',
    'InvoiceSequence',
    'STORAGE_SHOP', 'STORAGE_COLD', 'STORAGE_TYPES',
]
