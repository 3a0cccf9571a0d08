"""SMS Ledger: turn bank notification SMS backups into transaction records."""

__version__ = "0.1.0"
