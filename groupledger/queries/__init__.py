"""Personal record query package."""

from groupledger.queries.executor import QueryExecutionError, RecordQueryExecutor

__all__ = ["QueryExecutionError", "RecordQueryExecutor"]
