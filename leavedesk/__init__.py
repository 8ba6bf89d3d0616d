"""LeaveDesk — multi-tenant leave accounting and approval engine."""
