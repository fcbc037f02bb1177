# admissions_core/management/commands/check_workflow_registry.py

from django.core.management.base import BaseCommand, CommandError

from admissions_core.workflows import copy_catalog
from admissions_core.workflows.definitions import STAGES
from admissions_core.workflows.registry import StatusRegistry


class Command(BaseCommand):
    help = "Validate the five-stage status registry"

    def handle(self, *args, **options):
        self.stdout.write("Checking status registry...\n")

        registry = StatusRegistry(STAGES, validate=False)
        problems = registry.problems()

        for stage in registry.stages():
            prefixes = (f"stage {stage.number}:", f"stage {stage.number} '")
            stage_problems = [p for p in problems if p.startswith(prefixes)]
            if stage_problems:
                self.stderr.write(f"[ERROR] stage {stage.number} ({stage.name})")
                for problem in stage_problems:
                    self.stderr.write(f"        {problem}")
            else:
                self.stdout.write(
                    f"[OK] stage {stage.number} ({stage.name}): "
                    f"{len(stage.statuses)} statuses, entry '{stage.entry_status}'"
                )

        other = [p for p in problems if not p.startswith("stage ")]
        for problem in other:
            self.stderr.write(f"[ERROR] {problem}")

        missing_copy = [
            f"{row.stage}:{row.key}"
            for row in registry.rows()
            if copy_catalog.lookup(row.stage, row.key, "display_name") is None
        ]
        for key in missing_copy:
            self.stderr.write(f"[WARN] no display name for {key}")

        if problems:
            self.stderr.write("\nRegistry validation FAILED.")
            raise CommandError(f"{len(problems)} registry problem(s) found.")

        self.stdout.write("\nStatus registry validated successfully.")
