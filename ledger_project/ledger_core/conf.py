from django.conf import settings

# Defaults for settings.LEDGER_IMPORT; anything set there wins
DEFAULTS = {
    "XML_CHUNK_SIZE": 500,
    "STAGED_COMMIT_SIZE": 1,
    "ERROR_SAMPLE_SIZE": 100,
    "TALLY_ERROR_SAMPLE_SIZE": 50,
    "MAX_UPLOAD_MB": 10,
    "DATE_DAYFIRST": True,
    "ASYNC_SYNC": False,
    "MAX_PAGE_SIZE": 1000,
}


def get_import_setting(name):
    overrides = getattr(settings, "LEDGER_IMPORT", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
