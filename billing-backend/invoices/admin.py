# billing-backend/invoices/admin.py

from django.contrib import admin

from .models import DebtCollection, Invoice, InvoiceItem, Payment
from .services import update_invoice


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ["amount"]


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ["amount", "payment_date", "payment_method", "reference"]
    readonly_fields = fields
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = [
        "invoice_number",
        "user",
        "client",
        "currency",
        "total_amount",
        "paid_amount",
        "status",
        "payment_status",
        "due_date",
        "is_recurring",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "currency", "is_recurring"]
    search_fields = ["invoice_number", "client__name", "client__company", "user__username"]
    readonly_fields = [
        "subtotal",
        "discount_amount",
        "tax_amount",
        "total_amount",
        "paid_amount",
        "payment_status",
        "status_history",
        "sent_at",
        "last_viewed_at",
        "recurring_last_date",
        "created_at",
        "updated_at",
    ]
    inlines = [InvoiceItemInline, PaymentInline]
    date_hierarchy = "created_at"

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        # item edits go through the calculator like any API edit
        invoice = form.instance
        update_invoice(invoice, {}, invoice.line_inputs())


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["id", "invoice", "amount", "payment_date", "payment_method", "user"]
    list_filter = ["payment_method"]
    search_fields = ["invoice__invoice_number", "reference", "user__username"]
    date_hierarchy = "payment_date"


@admin.register(DebtCollection)
class DebtCollectionAdmin(admin.ModelAdmin):
    list_display = ["id", "invoice", "amount_collected", "created_at"]
    search_fields = ["invoice__invoice_number"]
