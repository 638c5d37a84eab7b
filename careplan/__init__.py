"""Care plan task engine: recurring templates, daily records, reminders and remote sync."""
