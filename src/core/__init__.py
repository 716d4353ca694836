"""
Core infrastructure layer.

Subsystems:
- config: static Config (environment) and ConfigManager (YAML tunables)
- logging: structured logging and LogContext
- database: async SQLAlchemy engine, sessions and ORM base
- event: in-process EventBus
- services: ServiceContainer wiring every domain service
- exceptions: infrastructure exception hierarchy

No business logic or Discord-facing behaviour lives here.
"""
