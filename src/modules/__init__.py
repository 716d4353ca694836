"""
Domain modules.

Each package owns its repositories and services:
- shared: BaseRepository, BaseService, domain exceptions and validators
- guild: guild configuration and permission resolution
- audit: append-only audit trail
- staff: staff hierarchy, hiring, promotion, termination
- jobs: job postings, applications and job role cleanup
- cases: cases, retainers, feedback and reminders
- rules: rules channel content and sync
- setup: full server bootstrap and wipe
- validation: permission, business-rule and cross-entity validation
"""
