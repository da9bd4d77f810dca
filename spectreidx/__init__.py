"""Row models, SQL statements, checkpoint tracking and batched writes for a block DAG indexer."""

__version__ = "0.1.0"