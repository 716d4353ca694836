"""/job commands: postings and their Discord role cleanup."""
