# billing-backend/quotations/admin.py

from django.contrib import admin, messages

from common.exceptions import InvalidTransition

from .models import Quotation, QuotationItem
from .services import update_quotation


class QuotationItemInline(admin.TabularInline):
    model = QuotationItem
    extra = 0
    readonly_fields = ["amount"]


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = [
        "quotation_number",
        "user",
        "client",
        "currency",
        "total_amount",
        "status",
        "valid_until",
        "converted_invoice",
        "created_at",
    ]
    list_filter = ["status", "currency"]
    search_fields = ["quotation_number", "client__name", "client__company", "user__username"]
    readonly_fields = [
        "subtotal",
        "discount_amount",
        "tax_amount",
        "total_amount",
        "status_history",
        "converted_invoice",
        "sent_at",
        "last_viewed_at",
        "accepted_at",
        "created_at",
        "updated_at",
    ]
    inlines = [QuotationItemInline]

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        quotation = form.instance
        try:
            update_quotation(quotation, {}, quotation.line_inputs())
        except InvalidTransition as exc:
            self.message_user(request, exc.message, level=messages.WARNING)
