from clockpay.db.base import Base
import clockpay.models  # noqa: F401

target_metadata = Base.metadata
