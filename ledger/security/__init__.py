"""ledger.security

Audit trail for privileged actions.
"""

from ledger.security.audit import AuditLogger

__all__ = ["AuditLogger"]
