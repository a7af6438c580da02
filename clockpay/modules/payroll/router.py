"""Payroll module router aggregation."""
from clockpay.routers import payroll

ROUTERS = [payroll.router]
