from django.contrib import admin

from .models import EmailLog, EmailTemplate


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ("name", "locale", "version", "is_active", "updated_at")
    list_filter = ("name", "locale", "is_active")
    ordering = ("name", "locale", "-version")


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "document_kind", "document_id", "to_address", "status", "sent_at")
    list_filter = ("status", "document_kind")
    search_fields = ("to_address", "user__username", "error_message")
    date_hierarchy = "created_at"
    readonly_fields = (
        "user", "to_address", "subject", "template", "document_kind", "document_id",
        "payload", "status", "error_message", "created_at", "sent_at",
    )

    def has_add_permission(self, request):
        # logs are written by emails.services only
        return False
