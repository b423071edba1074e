from src.infrastructure.persistence.models.agency import Agency
# Mixins for model composition
from src.infrastructure.persistence.models.mixins import (
    AgencyMixin, AuditedMultiTenantModel, CuidMixin, MultiTenantModel,
    SoftDeleteMixin, TimestampMixin, UserAuditMixin)
from src.infrastructure.persistence.models.workflow import (Workflow,
                                                            WorkflowRun)

__all__ = [
    # Models
    "Agency",
    "Workflow",
    "WorkflowRun",
    # Mixins
    "CuidMixin",
    "AgencyMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "UserAuditMixin",
    "MultiTenantModel",
    "AuditedMultiTenantModel",
]
