"""Auth module router aggregation."""
from clockpay.routers import auth

ROUTERS = [auth.router]
