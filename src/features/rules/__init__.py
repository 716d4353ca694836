"""/rules commands: managed rules embeds in text channels."""
