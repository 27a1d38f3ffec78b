from orgbilling.models.base import Base
from orgbilling.models.organization import Organization

__all__ = [
    "Base",
    "Organization",
]
