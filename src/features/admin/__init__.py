"""/admin commands: guild permissions, server setup, rules and integrity repair."""
