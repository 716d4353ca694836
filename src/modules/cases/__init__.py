"""Client cases and the records that hang off them (retainers, feedback, reminders)."""
