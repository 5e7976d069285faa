from datetime import date

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from invoices.recurring import generate_due_invoices


class Command(BaseCommand):
    help = "Generate draft invoices for every recurring cycle that has arrived."

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            dest="today",
            default=None,
            help="Run as of this date (YYYY-MM-DD). Defaults to today.",
        )
        parser.add_argument("--user", dest="username", default=None, help="Only this user's invoices")
        parser.add_argument("--dry-run", action="store_true", help="Report what would be generated")

    def handle(self, *args, **options):
        today = None
        if options.get("today"):
            try:
                today = date.fromisoformat(options["today"])
            except ValueError:
                raise CommandError(f"Invalid --date '{options['today']}'. Use YYYY-MM-DD.")

        user = None
        if options.get("username"):
            User = get_user_model()
            user = User.objects.filter(username=options["username"]).first()
            if user is None:
                raise CommandError(f"User '{options['username']}' not found")

        result = generate_due_invoices(today=today, user=user, dry_run=options["dry_run"])

        for inv in result.created:
            self.stdout.write(f"created {inv.invoice_number} ({inv.currency} {inv.total_amount})")
        for tpl in result.blocked:
            self.stdout.write(self.style.WARNING(f"blocked {tpl.invoice_number}: plan limit reached"))
        self.stdout.write(self.style.SUCCESS(
            f"Generated {len(result.created)} invoice(s); {len(result.ended)} series ended; "
            f"{len(result.blocked)} blocked"
        ))
