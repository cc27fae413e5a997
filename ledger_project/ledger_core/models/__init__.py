from .auditlog import AuditLog
from .customer import Customer
from .imports import ImportLog, StagingImport
from .invoice import Invoice
from .ledger import LedgerEntry
from .mobile import MobileLinkRequest
from .payment import Payment
