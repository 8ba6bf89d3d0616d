"""Leave module — work-day calculation, balance ledger and request lifecycle."""
