from django.contrib import admin

from .models import POSSale, POSSaleItem


class POSSaleItemInline(admin.TabularInline):
    model = POSSaleItem
    extra = 0
    readonly_fields = ["amount"]


@admin.register(POSSale)
class POSSaleAdmin(admin.ModelAdmin):
    list_display = ["sale_number", "user", "currency", "total_amount", "payment_method", "invoice", "created_at"]
    list_filter = ["currency", "payment_method"]
    search_fields = ["sale_number", "user__username"]
    readonly_fields = ["subtotal", "discount_amount", "tax_amount", "total_amount", "change_amount", "invoice"]
    inlines = [POSSaleItemInline]
