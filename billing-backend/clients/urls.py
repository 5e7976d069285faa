# billing-backend/clients/urls.py

from django.urls import path

from .views import ClientDetailView, ClientListCreateView

app_name = "clients"

urlpatterns = [
    path("", ClientListCreateView.as_view(), name="client-list"),
    path("<int:pk>", ClientDetailView.as_view(), name="client-detail"),
]
