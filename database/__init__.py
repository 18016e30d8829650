from database.database import build_engine, build_session_factory, db_session_scope, init_db
from database.memory_store import InMemoryRecordStore
from database.record_store import SqlRecordStore

__all__ = [
    'build_engine',
    'build_session_factory',
    'db_session_scope',
    'init_db',
    'InMemoryRecordStore',
    'SqlRecordStore',
]
