"""Sessions module router aggregation."""
from clockpay.routers import events, sessions

ROUTERS = [sessions.router, events.router]
