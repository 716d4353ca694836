"""
Command validation pipeline.

- business_rules: single-rule evaluators (role limit, case limit, staff, permission)
- cross_entity: integrity checks spanning entity types, scan and repair
- command_validation: the aggregate gate commands call before mutating
- pipeline: per-command validator step lists
- pending / cache: bypass tokens and short-lived result memoization

Import from the submodules directly; this package keeps no re-exports so
the services can import each other's types without cycles.
"""
