"""Reports module — read-only aggregates over the leave ledger."""
