from django.contrib import admin
from .models import Plan, Subscription, UsageRecord


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "max_clients", "max_invoices", "max_pdfs", "max_emails", "is_active")
    search_fields = ("code", "name")
    list_filter = ("is_active",)


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ("user", "plan", "status", "current_period_start", "current_period_end")
    list_filter = ("status", "plan")
    search_fields = ("user__username", "user__email", "plan__code")


@admin.register(UsageRecord)
class UsageRecordAdmin(admin.ModelAdmin):
    list_display = ("user", "resource", "created_at")
    list_filter = ("resource",)
    search_fields = ("user__username", "user__email")
