import hashlib
import logging

from ..exceptions import DuplicateFileError
from ..models import ImportLog, StagingImport

logger = logging.getLogger(__name__)


def file_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def find_previous_import(digest):
    """The ImportLog or StagingImport already holding this content hash, if any."""
    previous = ImportLog.objects.filter(file_hash=digest).first()
    if previous is None:
        previous = StagingImport.objects.filter(file_hash=digest).first()
    return previous


def is_duplicate_file(digest) -> bool:
    return find_previous_import(digest) is not None


def ensure_new_file(content: bytes) -> str:
    """Hash the upload and refuse it if the same bytes were accepted before.
    Runs before any parsing. The unique column on file_hash still backs this
    up for two uploads of one file racing each other."""
    digest = file_hash(content)
    previous = find_previous_import(digest)
    if previous is not None:
        logger.info(
            "Rejected duplicate file %s (already %s %s)",
            digest[:12], previous.__class__.__name__, previous.pk,
        )
        raise DuplicateFileError(previous)
    return digest
