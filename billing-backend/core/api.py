# core/api.py
from rest_framework.routers import DefaultRouter

from invoices.views import InvoiceViewSet, PaymentViewSet
from pos.views import POSSaleViewSet
from quotations.views import QuotationViewSet

router = DefaultRouter(trailing_slash=False)
router.register(r"invoices", InvoiceViewSet, basename="invoice")
router.register(r"payments", PaymentViewSet, basename="payment")
router.register(r"quotations", QuotationViewSet, basename="quotation")
router.register(r"pos/sales", POSSaleViewSet, basename="pos-sale")
