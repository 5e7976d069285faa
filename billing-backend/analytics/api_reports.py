# analytics/api_reports.py
"""
Report API endpoints.
All views inherit from BaseReportView which provides user scoping, date
range validation, rate limiting, caching and error handling.
"""
import logging

from django.conf import settings
from django.core.cache import cache
from django.http import Http404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException, Throttled
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from analytics.reports.aggregation import (
    BUCKET_CHOICES,
    QUOTATION_BUCKET_CHOICES,
    AggregationFilters,
    aggregate,
    aggregate_quotations,
    serialize_quotation_result,
    serialize_result,
)
from analytics.reports.base import get_cache_key, parse_date_range, rate_limit_report
from analytics.reports.dashboard import compute_dashboard
from analytics.reports.loaders import (
    load_debt_collections,
    load_invoices,
    load_payments,
    load_pos_sales,
    load_quotations,
)
from analytics.signals import report_version
from billing.choices import ClientType, DocumentStatus, PaymentStatus, QUOTATION_STORED_STATUSES
from clients.models import Client
from common.api_mixins import BillingErrorResponseMixin
from common.exceptions import BillingError

logger = logging.getLogger(__name__)


class BaseReportView(BillingErrorResponseMixin, APIView):
    """
    Base class for report views.
    Provides common functionality:
    - User scoping (every loader filters on request.user)
    - Date range validation
    - Rate limiting
    - Caching keyed on every parameter
    - Error handling
    """
    permission_classes = [IsAuthenticated]
    report_type = None

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        is_over_limit, retry_after = rate_limit_report(
            user_id=request.user.id,
            limit=int(getattr(settings, "REPORT_RATE_LIMIT_PER_MINUTE", 60)),
            window_seconds=60,
        )
        if is_over_limit:
            logger.warning("Rate limit exceeded for user %s on %s", request.user.id, request.path)
            raise Throttled(wait=retry_after)

    def handle_exception(self, exc):
        if isinstance(exc, (APIException, BillingError, Http404)):
            return super().handle_exception(exc)
        logger.error(
            "Error in report view: %s: %s", type(exc).__name__, exc,
            exc_info=True,
            extra={
                "user_id": getattr(self.request.user, "id", None),
                "path": self.request.path,
                "method": self.request.method,
            },
        )
        return Response(
            {"error": "An error occurred while generating the report. Please try again."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    def bad_request(self, message):
        return Response({"error": message}, status=status.HTTP_400_BAD_REQUEST)

    def get_date_range(self, request):
        """
        Returns:
            Tuple of (date_from, date_to, error_response)
        """
        df, dt_, error_msg = parse_date_range(request.GET.get("date_from"), request.GET.get("date_to"))
        if error_msg:
            return None, None, self.bad_request(error_msg)
        return df, dt_, None

    def get_currency(self, request):
        currency = (request.GET.get("currency") or getattr(settings, "BILLING_DEFAULT_CURRENCY", "USD"))
        currency = currency.strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            return None, self.bad_request("currency must be a 3-letter ISO 4217 code")
        return currency, None

    def get_choice(self, request, name, choices):
        value = (request.GET.get(name) or "").strip() or None
        if value is not None and value not in choices:
            return None, self.bad_request(f"{name} must be one of: {', '.join(choices)}")
        return value, None

    def cache_params(self, request, **params):
        params["version"] = report_version(request.user.id)
        return params

    def get_cache(self, params: dict):
        return cache.get(get_cache_key(self.report_type, self.request.user.id, params))

    def set_cache(self, params: dict, data):
        timeout = int(getattr(settings, "REPORT_CACHE_SECONDS", 300))
        cache.set(get_cache_key(self.report_type, self.request.user.id, params), data, timeout=timeout)


class AggregateReportView(BaseReportView):
    """
    GET /api/v1/analytics/aggregate

    Query parameters:
    - currency: 3-letter code (default BILLING_DEFAULT_CURRENCY)
    - bucket_by: month | status | payment_status | method | client (default month)
    - date_from / date_to: YYYY-MM-DD, both or neither
    - client_type, status, payment_status: optional filters

    POS-generated invoices never count. Month buckets are zero-filled.
    """
    report_type = "aggregate"

    def get(self, request):
        currency, error = self.get_currency(request)
        if error:
            return error
        df, dt_, error = self.get_date_range(request)
        if error:
            return error
        bucket_by = (request.GET.get("bucket_by") or "month").strip().lower()
        if bucket_by not in BUCKET_CHOICES:
            return self.bad_request(f"bucket_by must be one of: {', '.join(BUCKET_CHOICES)}")
        client_type, error = self.get_choice(request, "client_type", ClientType.values)
        if error:
            return error
        doc_status, error = self.get_choice(request, "status", DocumentStatus.values)
        if error:
            return error
        payment_status, error = self.get_choice(request, "payment_status", PaymentStatus.values)
        if error:
            return error

        today = timezone.localdate()
        params = self.cache_params(
            request,
            currency=currency,
            bucket_by=bucket_by,
            date_from=df,
            date_to=dt_,
            client_type=client_type,
            status=doc_status,
            payment_status=payment_status,
            today=today,
        )
        cached = self.get_cache(params)
        if cached is not None:
            return Response(cached)

        filters = AggregationFilters(
            date_from=df,
            date_to=dt_,
            client_type=client_type,
            status=doc_status,
            payment_status=payment_status,
            today=today,
        )
        user = request.user
        result = aggregate(
            load_invoices(user),
            load_payments(user),
            load_pos_sales(user),
            currency,
            filters,
            bucket_by,
            debt_collections=load_debt_collections(user),
        )
        data = serialize_result(result)
        data["period"] = {
            "date_from": df.isoformat() if df else None,
            "date_to": dt_.isoformat() if dt_ else None,
        }
        self.set_cache(params, data)
        return Response(data)


class DashboardReportView(BaseReportView):
    """
    GET /api/v1/analytics/dashboard

    Headline metrics for a window (default: this month up to today)
    against the window of the same length before it.
    """
    report_type = "dashboard"

    def get(self, request):
        currency, error = self.get_currency(request)
        if error:
            return error
        df, dt_, error = self.get_date_range(request)
        if error:
            return error
        client_type, error = self.get_choice(request, "client_type", ClientType.values)
        if error:
            return error

        today = timezone.localdate()
        if df is None:
            df, dt_ = today.replace(day=1), today

        params = self.cache_params(
            request, currency=currency, date_from=df, date_to=dt_, client_type=client_type, today=today
        )
        cached = self.get_cache(params)
        if cached is not None:
            return Response(cached)

        user = request.user
        data = compute_dashboard(
            load_invoices(user),
            load_payments(user),
            load_pos_sales(user),
            load_debt_collections(user),
            currency,
            df,
            dt_,
            today=today,
            client_type=client_type,
        )
        data["clients_count"] = Client.objects.filter(user=user).count()
        self.set_cache(params, data)
        return Response(data)


class QuotationReportView(BaseReportView):
    """
    GET /api/v1/analytics/quotations

    Query parameters:
    - currency: 3-letter code (default BILLING_DEFAULT_CURRENCY)
    - bucket_by: month | status | client (default month)
    - date_from / date_to: YYYY-MM-DD on created_at, both or neither
    - client_type, status: optional filters (status=overdue means past valid_until)

    Totals carry the quotation count, total and average value and the
    conversion rate (accepted or converted, in percent).
    """
    report_type = "quotations"

    def get(self, request):
        currency, error = self.get_currency(request)
        if error:
            return error
        df, dt_, error = self.get_date_range(request)
        if error:
            return error
        bucket_by = (request.GET.get("bucket_by") or "month").strip().lower()
        if bucket_by not in QUOTATION_BUCKET_CHOICES:
            return self.bad_request(f"bucket_by must be one of: {', '.join(QUOTATION_BUCKET_CHOICES)}")
        client_type, error = self.get_choice(request, "client_type", ClientType.values)
        if error:
            return error
        statuses = [value for value, _ in QUOTATION_STORED_STATUSES] + [DocumentStatus.OVERDUE.value]
        doc_status, error = self.get_choice(request, "status", statuses)
        if error:
            return error

        today = timezone.localdate()
        params = self.cache_params(
            request,
            currency=currency,
            bucket_by=bucket_by,
            date_from=df,
            date_to=dt_,
            client_type=client_type,
            status=doc_status,
            today=today,
        )
        cached = self.get_cache(params)
        if cached is not None:
            return Response(cached)

        filters = AggregationFilters(
            date_from=df, date_to=dt_, client_type=client_type, status=doc_status, today=today
        )
        result = aggregate_quotations(load_quotations(request.user), currency, filters, bucket_by)
        data = serialize_quotation_result(result)
        data["period"] = {
            "date_from": df.isoformat() if df else None,
            "date_to": dt_.isoformat() if dt_ else None,
        }
        self.set_cache(params, data)
        return Response(data)
