"""Central router registry for module-oriented composition."""
from __future__ import annotations

from fastapi import FastAPI

from clockpay.modules.auth.router import ROUTERS as AUTH_ROUTERS
from clockpay.modules.payroll.router import ROUTERS as PAYROLL_ROUTERS
from clockpay.modules.policy.router import ROUTERS as POLICY_ROUTERS
from clockpay.modules.sessions.router import ROUTERS as SESSION_ROUTERS

ALL_ROUTERS = AUTH_ROUTERS + SESSION_ROUTERS + POLICY_ROUTERS + PAYROLL_ROUTERS


def include_all_routers(app: FastAPI) -> None:
    for router in ALL_ROUTERS:
        app.include_router(router)
