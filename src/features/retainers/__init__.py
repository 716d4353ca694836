"""/retainer commands: client retainer agreements."""
