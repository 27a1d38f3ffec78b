from orgbilling.core.repositories.base import Repository
from orgbilling.core.repositories.organizations import OrganizationRepository

__all__ = [
    "Repository",
    "OrganizationRepository",
]
