"""/case commands."""
