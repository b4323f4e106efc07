"""Ledger Manager: parse, filter and import into plain-text ledger files."""

__version__ = "0.1.0"
