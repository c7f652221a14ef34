"""Command-line interface for the prediction ledger."""
