"""Generate the daily or weekly ticket report; meant to run from cron."""

from django.core.management.base import BaseCommand, CommandError

from dashboard.reports import PERIODS, generate_and_send


class Command(BaseCommand):
    help = "Build the ticket report for a period, write it as CSV and email it to managers."

    def add_arguments(self, parser):
        parser.add_argument("--period", choices=sorted(PERIODS), default="daily")

    def handle(self, *args, **options):
        period = options["period"]
        try:
            _, path, sent = generate_and_send(period)
        except OSError as exc:
            raise CommandError(f"Could not deliver the {period} report: {exc}") from exc
        self.stdout.write(self.style.SUCCESS(f"{period.capitalize()} report written to {path}; mailed to {sent}."))
