"""/feedback commands: client ratings."""
