class ImportRejected(Exception):
    """Raised when a whole file is refused before any row is processed
    (unparseable, unrecognized type, missing required header, empty)."""

    def __init__(self, message, status=400, details=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details


class DuplicateFileError(Exception):
    """Raised when a file with the same content hash was already accepted."""

    def __init__(self, previous):
        # previous: ImportLog or StagingImport that already holds the hash
        self.previous = previous
        super().__init__(f"File already imported as {previous.__class__.__name__} {previous.pk}")

    def as_dict(self):
        created = getattr(self.previous, "created_at", None)
        return {
            "importId": self.previous.pk,
            "importKind": self.previous.__class__.__name__,
            "importedAt": created.isoformat() if created else None,
        }


class UploadOrderViolation(Exception):
    """Raised when an XML stage is attempted before its prerequisite stage."""

    def __init__(self, stage, required):
        self.stage = stage
        self.required = required
        super().__init__(
            f"{required.capitalize()} XML must be uploaded before {stage.capitalize()} XML"
        )


class SettlementRejected(Exception):
    """Business-rule rejection of a settlement; carries the figures the
    caller needs to correct the request."""

    def __init__(self, message, status=400, **figures):
        super().__init__(message)
        self.message = message
        self.status = status
        self.figures = figures


class MobileVerificationError(Exception):
    def __init__(self, message, status=400, code=None, **extra):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.extra = extra
