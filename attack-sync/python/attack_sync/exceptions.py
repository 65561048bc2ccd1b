"""
Custom exceptions for the ATT&CK sync pipeline
"""

class AttackSyncError(Exception):
    """Base exception for the sync pipeline"""
    pass

class ConfigurationError(AttackSyncError):
    """Unknown domain or missing collection mapping"""
    pass

class TransportError(AttackSyncError):
    """TAXII request failed or returned an unusable page"""
    pass

class PaginationLimitError(AttackSyncError):
    """TAXII server kept paginating past the configured page ceiling"""
    pass

class DatabaseError(AttackSyncError):
    """Database operation error"""
    pass
