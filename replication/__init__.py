"""
PostgreSQL to Redshift Replication
==================================

Full-reload replication of every user table in a PostgreSQL schema into
Redshift, staged through S3-compatible object storage:

- Schema discovery from information_schema on every run
- Pipe-delimited COPY export, compressed and uploaded per table
- Atomic swap of the live warehouse table inside one transaction

Every run reloads every table; there is no incremental mode.
"""

__version__ = "1.0.0"
