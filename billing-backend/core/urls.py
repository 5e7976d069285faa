# core/urls.py
"""
URL configuration for the billing back end.

API routes live under /api/v1/. ViewSets are registered on the router in
core/api.py; plain views are included per app.
"""

from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView, TokenVerifyView

from invoices.views import InvoiceCalculateView

from .api import router  # single router for every ViewSet

urlpatterns = [
    path("", RedirectView.as_view(url="/admin/", permanent=False)),
    path("admin/", admin.site.urls),

    # Auth
    path("api/v1/auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/v1/auth/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("api/v1/auth/verify/", TokenVerifyView.as_view(), name="token_verify"),

    # API & docs
    path("api/v1/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/v1/docs/", SpectacularSwaggerView.as_view(url_name="schema")),

    # before the router so "calculate" is not read as an invoice id
    path("api/v1/invoices/calculate", InvoiceCalculateView.as_view(), name="invoice-calculate"),
    path("api/v1/", include(router.urls)),
    path("api/v1/clients/", include("clients.urls", namespace="clients")),
    path("api/v1/subscriptions/", include("subscriptions.urls")),
    path("api/v1/analytics/", include("analytics.urls")),
]
