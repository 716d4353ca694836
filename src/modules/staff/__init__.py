"""Staff records, the role hierarchy and hire/promote/demote/fire workflows."""
