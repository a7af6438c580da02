"""Policy module router aggregation."""
from clockpay.routers import policy

ROUTERS = [policy.router]
