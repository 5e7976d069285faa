from django.urls import path
from .views import PlanListView, UsageLimitsView

urlpatterns = [
    path("plans", PlanListView.as_view(), name="subscription-plans"),
    path("limits", UsageLimitsView.as_view(), name="subscription-limits"),
]
