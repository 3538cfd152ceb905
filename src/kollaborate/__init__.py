"""Task-ledger watcher that keeps a pool of terminal LLM agents in step with it."""

__version__ = "0.1.0"
