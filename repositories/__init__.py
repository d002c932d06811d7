"""
repositories/ - Data Access Layer
==================================
A single generic repository serves every entity type. Column metadata is
resolved once per type (metadata.py), turned into reusable SQL fragments
(fragments.py), and combined with caller predicates by PostgresRepository
(postgres_repo.py). Multi-row inserts are batched by bulk.py.
"""
