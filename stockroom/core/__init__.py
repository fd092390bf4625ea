"""Stockroom core: connection pool, query helpers, audit log and schema initializer."""
