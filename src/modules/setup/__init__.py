"""Server bootstrap: wipe and rebuild a guild as the Anarchy & Associates firm."""
