# admissions_core/management/commands/run_scheduled_automation.py

from django.core.management.base import BaseCommand, CommandError

from admissions_core.workflows.errors import WorkflowError
from admissions_core.workflows.runtime import run_scheduled_automation


class Command(BaseCommand):
    help = "Fire the schedule automation event (document reminders) for open applications"

    def handle(self, *args, **options):
        try:
            touched = run_scheduled_automation()
        except WorkflowError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(f"[OK] automation applied to {touched} application(s)")
