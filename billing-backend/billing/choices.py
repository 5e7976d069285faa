from django.db import models


class DocumentKind(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    QUOTATION = "quotation", "Quotation"


class DocumentStatus(models.TextChoices):
    DRAFT     = "draft",     "Draft"
    SENT      = "sent",      "Sent"
    VIEWED    = "viewed",    "Viewed"
    OVERDUE   = "overdue",   "Overdue"     # read-time overlay only, never stored
    ACCEPTED  = "accepted",  "Accepted"    # quotations
    REJECTED  = "rejected",  "Rejected"    # quotations
    CONVERTED = "converted", "Converted"   # quotations


class PaymentStatus(models.TextChoices):
    UNPAID         = "unpaid",         "Unpaid"
    PARTIALLY_PAID = "partially_paid", "Partially paid"
    PAID           = "paid",           "Paid"
    OVERDUE        = "overdue",        "Overdue"   # read-time overlay only


class StatusEvent(models.TextChoices):
    SEND    = "send",    "Send"
    VIEW    = "view",    "View"
    ACCEPT  = "accept",  "Accept"
    REJECT  = "reject",  "Reject"
    CONVERT = "convert", "Convert to invoice"


class Frequency(models.TextChoices):
    WEEKLY    = "weekly",    "Weekly"
    MONTHLY   = "monthly",   "Monthly"
    QUARTERLY = "quarterly", "Quarterly"
    YEARLY    = "yearly",    "Yearly"


class NumberingStrategy(models.TextChoices):
    AUTO   = "auto",   "Auto-increment"
    MANUAL = "manual", "Manual"
    DATE   = "date",   "Date based"


class ClientType(models.TextChoices):
    INDIVIDUAL = "individual", "Individual"
    BUSINESS   = "business",   "Business"


INVOICE_STORED_STATUSES = [
    (DocumentStatus.DRAFT, DocumentStatus.DRAFT.label),
    (DocumentStatus.SENT, DocumentStatus.SENT.label),
    (DocumentStatus.VIEWED, DocumentStatus.VIEWED.label),
]

QUOTATION_STORED_STATUSES = INVOICE_STORED_STATUSES + [
    (DocumentStatus.ACCEPTED, DocumentStatus.ACCEPTED.label),
    (DocumentStatus.REJECTED, DocumentStatus.REJECTED.label),
    (DocumentStatus.CONVERTED, DocumentStatus.CONVERTED.label),
]

STORED_PAYMENT_STATUSES = [
    (PaymentStatus.UNPAID, PaymentStatus.UNPAID.label),
    (PaymentStatus.PARTIALLY_PAID, PaymentStatus.PARTIALLY_PAID.label),
    (PaymentStatus.PAID, PaymentStatus.PAID.label),
]

DEFAULT_PAYMENT_METHOD = "cash"
