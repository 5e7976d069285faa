# invoices/recurring.py
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from billing.services.recurring import next_occurrence
from common.exceptions import LimitExceeded

from .models import Invoice
from .services import create_invoice

logger = logging.getLogger(__name__)

CLONED_FIELDS = (
    "client",
    "currency",
    "notes",
    "terms",
)


@dataclass
class GenerationResult:
    created: List[Invoice] = field(default_factory=list)
    ended: List[Invoice] = field(default_factory=list)
    blocked: List[Invoice] = field(default_factory=list)


def current_cycle(template: Invoice) -> Optional[date]:
    """Next cycle date still to be generated for ``template``, or None once ended."""
    return next_occurrence(
        template.recurring_frequency,
        template.issue_date,
        end_date=template.recurring_end_date,
        after=template.recurring_last_date or template.issue_date,
    )


def clone_for_cycle(template: Invoice, cycle_date: date) -> Invoice:
    """
    New draft invoice for one cycle: same client, charges and items, fresh
    number, totals recomputed, due on the following cycle date.
    """
    data = {name: getattr(template, name) for name in CLONED_FIELDS}
    data.update(template.charge_inputs())
    data["issue_date"] = cycle_date
    data["due_date"] = next_occurrence(template.recurring_frequency, template.issue_date, after=cycle_date)
    data["template_invoice"] = template
    return create_invoice(template.user, data, template.line_inputs(), today=cycle_date)


def generate_due_invoices(today: Optional[date] = None, user=None, dry_run: bool = False) -> GenerationResult:
    """
    Generate every recurring cycle that has arrived by ``today``.

    Missed cycles are caught up one invoice per cycle. A user at their
    invoice limit is skipped (logged) and retried on the next run.
    """
    today = today or timezone.localdate()
    result = GenerationResult()

    templates = Invoice.objects.filter(is_recurring=True).exclude(recurring_frequency="")
    if user is not None:
        templates = templates.filter(user=user)

    for template in templates.select_related("user", "client").order_by("id"):
        cycle = current_cycle(template)
        while cycle is not None and cycle <= today:
            if dry_run:
                logger.info("[dry-run] would generate %s cycle %s", template.invoice_number, cycle)
                template.recurring_last_date = cycle
                cycle = current_cycle(template)
                continue
            try:
                with transaction.atomic():
                    invoice = clone_for_cycle(template, cycle)
                    template.recurring_last_date = cycle
                    template.save(update_fields=["recurring_last_date", "updated_at"])
            except LimitExceeded:
                logger.warning(
                    "Recurring invoice %s not generated for %s: plan limit reached",
                    template.invoice_number, cycle,
                )
                result.blocked.append(template)
                break
            logger.info("Generated %s from recurring %s (cycle %s)",
                        invoice.invoice_number, template.invoice_number, cycle)
            result.created.append(invoice)
            cycle = current_cycle(template)

        if cycle is None and not dry_run:
            template.is_recurring = False
            template.save(update_fields=["is_recurring", "updated_at"])
            logger.info("Recurring series %s ended", template.invoice_number)
            result.ended.append(template)

    return result
