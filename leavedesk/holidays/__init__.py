"""Holiday calendar consumed by the work-day calculator."""
