# admissions_core/management/commands/scan_application_sla.py

from django.core.management.base import BaseCommand

from admissions_core.workflows.sla_scanner import check_sla_breaches


class Command(BaseCommand):
    help = "Raise SLA alerts for applications that have waited too long in a status"

    def handle(self, *args, **options):
        created = check_sla_breaches()
        self.stdout.write(f"[OK] {created} new SLA alert(s)")
