from .db import DatabaseManager, question_key, UPSERT_CREATED, UPSERT_UPDATED

__all__ = [
    'DatabaseManager',
    'question_key',
    'UPSERT_CREATED',
    'UPSERT_UPDATED',
]
