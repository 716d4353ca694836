"""Rules channel content and message sync."""
