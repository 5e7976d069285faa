import logging

from rest_framework.response import Response

from common.exceptions import BillingError

logger = logging.getLogger(__name__)


class OwnerScopedViewSetMixin:
    """
    Auto-filters by the owning user and sets the owner on create.
    For models with a direct FK: owner_field = "user"
    For models linked via a parent document: owner_field=None, owner_path="invoice__user"
    """
    owner_field = "user"
    owner_path = None

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if self.owner_field:
            return qs.filter(**{self.owner_field: user})
        elif self.owner_path:
            return qs.filter(**{self.owner_path: user})
        return qs.none()

    def perform_create(self, serializer):
        if self.owner_field:
            serializer.save(**{self.owner_field: self.request.user})
        else:
            serializer.save()


class BillingErrorResponseMixin:
    """
    Turns domain errors raised by services into a 4xx JSON body:
      {"detail": "...", "code": "limit_exceeded"}
    """

    def handle_exception(self, exc):
        if isinstance(exc, BillingError):
            logger.warning(
                "%s rejected: %s",
                type(exc).__name__,
                exc.message,
                extra={"path": getattr(self.request, "path", None), "code": exc.code},
            )
            return Response(exc.as_dict(), status=exc.status_code)
        return super().handle_exception(exc)
