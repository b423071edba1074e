""" Repository module for the persistence layer. """

from src.infrastructure.persistence.repositories.agency_repo import AgencyRepository
from src.infrastructure.persistence.repositories.base import BaseRepository
from src.infrastructure.persistence.repositories.workflow_repo import (
    WorkflowRepository,
    WorkflowRunRepository,
)

__all__ = [
    "BaseRepository",
    "AgencyRepository",
    "WorkflowRepository",
    "WorkflowRunRepository",
]
