"""Import all models so SQLAlchemy metadata is fully registered."""

from clockpay.db.base import Base

from clockpay.models.enums import PolicySource, Role, SessionStatus
from clockpay.models.job_lease import JobLease
from clockpay.models.policy import GlobalPolicy, WorkerOverride
from clockpay.models.salary_payment import SalaryPayment
from clockpay.models.user import User
from clockpay.models.work_session import WorkSession

__all__ = [
    "Base",
    "GlobalPolicy",
    "JobLease",
    "PolicySource",
    "Role",
    "SalaryPayment",
    "SessionStatus",
    "User",
    "WorkSession",
    "WorkerOverride",
]
