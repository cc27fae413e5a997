from .actions import (approve_mobile_requests, reject_mobile_requests,
                      sync_staging_imports)
from .auditlog import AuditLogAdmin
from .customer import CustomerAdmin, InvoiceAdmin, PaymentAdmin
from .imports import ImportLogAdmin, StagingImportAdmin
from .ledger import LedgerEntryAdmin
from .mobile import MobileLinkRequestAdmin
from .ReadOnly import ReadOnlyAdmin
