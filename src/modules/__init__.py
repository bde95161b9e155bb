"""
Feature modules for Level Up Solo.

One subpackage per service (tasks, goals, skills, stats, activity, ai,
auth) plus `store` for persistence and `shared` for the common base
classes and domain exceptions. Services are wired by
`src.core.services.container.ServiceContainer`.
"""
