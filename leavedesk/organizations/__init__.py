"""Organizations module — tenants, users and memberships consumed by the leave engine."""
