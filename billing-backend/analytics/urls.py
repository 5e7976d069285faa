# analytics/urls.py
from django.urls import path

from .api_reports import AggregateReportView, DashboardReportView, QuotationReportView

urlpatterns = [
    path("aggregate", AggregateReportView.as_view(), name="analytics-aggregate"),
    path("dashboard", DashboardReportView.as_view(), name="analytics-dashboard"),
    path("quotations", QuotationReportView.as_view(), name="analytics-quotations"),
]
