"""/staff commands: hire, fire, promote, demote and roster views."""
