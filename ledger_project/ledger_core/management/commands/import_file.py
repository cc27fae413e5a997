import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import (DuplicateFileError, ImportRejected,
                                    UploadOrderViolation)
from ledger_core.services import staging, tally, xml_upload

PIPELINES = ("staged", "tally-party", "tally-sales", "xml-customers", "xml-bills", "xml-payments")


class Command(BaseCommand):
    help = "Run one import pipeline against a file on disk and print its summary."

    def add_arguments(self, parser):
        parser.add_argument("pipeline", choices=PIPELINES)
        parser.add_argument("path", type=str, help="File to import")

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.is_file():
            raise CommandError(f"No such file: {path}")
        content = path.read_bytes()
        pipeline = options["pipeline"]

        try:
            if pipeline == "staged":
                batch = staging.stage_upload(content, path.name)
                self.stdout.write(self.style.NOTICE(
                    f"Staged import {batch.pk} ({batch.import_type}, {len(batch.raw_rows)} rows)"))
                result = staging.process_staging_import(batch.pk)
            elif pipeline.startswith("tally-"):
                result = tally.import_tally_report(pipeline.split("-", 1)[1], content, path.name)
            else:
                result = xml_upload.run_stage(pipeline.split("-", 1)[1], content, path.name)
        except DuplicateFileError as e:
            raise CommandError(f"Already imported: {json.dumps(e.as_dict())}")
        except UploadOrderViolation as e:
            raise CommandError(str(e))
        except ImportRejected as e:
            raise CommandError(e.message)

        self.stdout.write(json.dumps(result, indent=2, default=str))
        self.stdout.write(self.style.SUCCESS("Import finished."))
