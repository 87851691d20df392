"""Custom exception classes for the alpha engine"""

from typing import Optional, Any


# ============================================================================
# VALIDATION ERRORS
# ============================================================================

class ValidationError(ValueError):
    """Base validation error for invalid data"""
    
    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.field = field
        self.value = value
        
        full_message = message
        if field and value is not None:
            full_message = f"{message} (field: {field}, value: {value})"
        elif field:
            full_message = f"{message} (field: {field})"
        
        super().__init__(full_message)


class InvalidInputError(ValidationError):
    """Malformed question or market quote; rejects a single item, never the batch"""
    pass


class ConfigError(ValidationError):
    """Error in configuration"""
    
    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, field="config", value=config_key)


# ============================================================================
# ENGINE ERRORS
# ============================================================================

class EngineError(Exception):
    """Base error for estimation and scanning operations"""
    pass


class SourceUnavailableError(EngineError):
    """One data source is down; callers degrade and continue with the rest"""
    
    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        msg = f"Source unavailable: {source}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class InsufficientDataError(EngineError):
    """No usable evidence and no cached prior for a question"""
    
    def __init__(self, question: str, reason: str = ""):
        self.question = question
        msg = f"Insufficient data for question: {question[:80]}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ScanTimeoutError(EngineError, TimeoutError):
    """Fetch-level or scan-level deadline exceeded"""
    
    def __init__(self, scope: str, timeout_seconds: float, target: str = ""):
        self.scope = scope
        self.timeout_seconds = timeout_seconds
        self.target = target
        msg = f"{scope.capitalize()} deadline of {timeout_seconds:.1f}s exceeded"
        if target:
            msg += f" for {target}"
        super().__init__(msg)
