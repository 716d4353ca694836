"""/remind commands: delayed staff reminders."""
