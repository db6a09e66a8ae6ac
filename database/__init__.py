"""
Database Package Initialization.

============================================================
RECIPIENT PERSISTENCE LAYER
============================================================

Stores the chats subscribed to broadcasts. Every write runs
in an explicit transaction and failures raise.

============================================================
"""

# Core engine and session management
from .engine import (
    # Declarative base
    Base,

    # Engine creation
    create_database_engine,
    create_session_factory,
    get_engine,
    get_session_factory,

    # Session management
    transaction_scope,

    # Database initialization
    initialize_database,
    verify_required_tables,
    REQUIRED_TABLES,

    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)

# ORM Models
from .models import TelegramChat
