"""
AssignX kernel: project lifecycle state machine, wallets and ledger.

Layers (inner to outer):
    domain/     pure values, quote arithmetic, workflow tables, clock
    db/         declarative base, engine/session management, ORM guards
    models/     SQLAlchemy ORM records
    services/   imperative shell; flush only, never commit
    selectors/  read-only queries returning DTOs

Transaction boundaries belong to ``assignx_services``.
"""
