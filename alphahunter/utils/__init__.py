from .errors import (
    ValidationError,
    InvalidInputError,
    ConfigError,
    EngineError,
    SourceUnavailableError,
    InsufficientDataError,
    ScanTimeoutError,
)
from .response_parser import (
    LLMResponseParser,
    coerce_float,
)
from .cache import TTLCache

__all__ = [
    # Validation errors
    'ValidationError',
    'InvalidInputError',
    'ConfigError',
    # Engine errors
    'EngineError',
    'SourceUnavailableError',
    'InsufficientDataError',
    'ScanTimeoutError',
    # Parsing
    'LLMResponseParser',
    'coerce_float',
    'TTLCache',
]
