"""HTTP routers, one per resource."""

from src.api.routes import ai, auth, battle, crud, data, goals, health, stats, tasks

ROUTERS = [
    auth.router,
    data.router,
    crud.router,
    tasks.router,
    goals.router,
    ai.router,
    stats.router,
    battle.router,
    health.router,
]

__all__ = ["ROUTERS"]
