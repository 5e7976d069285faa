# billing-backend/clients/admin.py

from django.contrib import admin

from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ["id", "display_name", "client_type", "email", "phone", "user", "created_at"]
    list_filter = ["client_type", "country"]
    search_fields = ["name", "company", "email", "phone", "user__username"]
    ordering = ["name"]
    readonly_fields = ["created_at", "updated_at"]
