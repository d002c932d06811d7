"""
db/ - Database Layer
====================
Handles the PostgreSQL connection pool, statement compilation, executors and
transactions. This layer is the lowest in the architecture and has no
dependencies on the repositories built on top of it.
"""
