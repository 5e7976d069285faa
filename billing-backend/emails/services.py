import logging
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import transaction
from django.template import Context, Template
from django.utils import timezone
from django.utils.html import strip_tags

from billing.choices import DocumentKind, StatusEvent
from billing.pdf import render_document_pdf
from billing.services.status import transition
from subscriptions.services import enforce_limit, record_usage

from .models import EmailLog, EmailTemplate

logger = logging.getLogger(__name__)

TEMPLATE_NAMES = {
    DocumentKind.INVOICE: "invoice_email",
    DocumentKind.QUOTATION: "quotation_email",
}


def render_template(template: EmailTemplate, context: dict) -> str:
    tpl = Template(template.html_body)
    return tpl.render(Context(context))


def render_subject(template: EmailTemplate, context: dict) -> str:
    return Template(template.subject).render(Context(context)).strip()


def get_template(name: str, locale: str = "en") -> Optional[EmailTemplate]:
    return (
        EmailTemplate.objects.filter(name=name, locale=locale, is_active=True)
        .order_by("-version")
        .first()
    )


def _document_context(document, kind: str, message: str) -> dict:
    client = document.client if document.client_id else None
    return {
        "kind": kind,
        "number": document.number,
        "client_name": client.display_name if client else "",
        "currency": document.currency,
        "total": f"{document.total_amount:.2f}",
        "issue_date": document.issue_date.isoformat(),
        "due_date": document.due_date.isoformat() if getattr(document, "due_date", None) else "",
        "valid_until": document.valid_until.isoformat() if getattr(document, "valid_until", None) else "",
        "sender_name": document.user.get_full_name() or document.user.get_username(),
        "message": message,
    }


def _mark_sent(document, kind: str):
    if kind == DocumentKind.INVOICE:
        from invoices.services import transition_invoice
        return transition_invoice(document, StatusEvent.SEND)
    from quotations.services import transition_quotation
    return transition_quotation(document, StatusEvent.SEND)


def send_document_email(
    document,
    kind: str,
    to: Optional[str] = None,
    message: str = "",
    attach_pdf: bool = True,
    locale: str = "en",
) -> EmailLog:
    """
    Email a saved invoice or quotation. Always logs the attempt.

    Limit-gated on ``emails``; only a successful send counts as usage and
    fires the ``send`` transition.
    """
    if document.pk is None:
        raise ValueError("Save the document before sending it")
    if kind not in TEMPLATE_NAMES:
        raise ValueError(f"Unknown document kind: {kind}")
    to = (to or (document.client.email if document.client_id else "")).strip()
    if not to:
        raise ValueError("A recipient email address is required")

    # reject before anything is sent
    transition(kind, document.status, StatusEvent.SEND)

    user = document.user
    context = _document_context(document, kind, message)
    name = TEMPLATE_NAMES[kind]

    with transaction.atomic():
        enforce_limit(user, "emails")

        template = get_template(name, locale)
        if not template:
            logger.error("Email template %s (%s) not found", name, locale)
            return EmailLog.objects.create(
                user=user,
                to_address=to,
                subject=f"[MISSING TEMPLATE] {name}",
                document_kind=kind,
                document_id=document.pk,
                status=EmailLog.STATUS_FAILED,
                payload={"context": context},
            )

        html_body = render_template(template, context)
        subject = render_subject(template, context)
        log = EmailLog.objects.create(
            user=user,
            to_address=to,
            subject=subject,
            template=template,
            document_kind=kind,
            document_id=document.pk,
            status=EmailLog.STATUS_QUEUED,
            payload={"context": context},
        )

        try:
            msg = EmailMultiAlternatives(
                subject=subject,
                body=strip_tags(html_body),
                from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
                to=[to],
            )
            msg.attach_alternative(html_body, "text/html")
            if attach_pdf:
                title = "Invoice" if kind == DocumentKind.INVOICE else "Quotation"
                msg.attach(f"{document.number}.pdf", render_document_pdf(document, title), "application/pdf")
            msg.send(fail_silently=False)
        except Exception as exc:
            logger.exception("Failed to send %s %s to %s", kind, document.number, to)
            log.status = EmailLog.STATUS_FAILED
            log.error_message = str(exc)
            log.save(update_fields=["status", "error_message"])
            return log

        log.status = EmailLog.STATUS_SENT
        log.sent_at = timezone.now()
        log.save(update_fields=["status", "sent_at"])
        record_usage(user, "emails")
        _mark_sent(document, kind)

    logger.info("Sent %s %s to %s (log id=%s)", kind, document.number, to, log.id)
    return log
