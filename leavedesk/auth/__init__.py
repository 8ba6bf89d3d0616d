"""Auth module — bearer-token validation and role enforcement."""
