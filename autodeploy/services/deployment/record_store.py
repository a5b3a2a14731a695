"""
In-memory store of the latest deployment record per project.
"""
from typing import Dict, List

from autodeploy.core.exceptions import DeploymentRecordNotFoundError
from autodeploy.models.deployment import DeploymentRecord


class DeploymentRecordStore:
    """Latest record per project id. Lost on restart."""

    def __init__(self):
        self._records: Dict[str, DeploymentRecord] = {}

    def save(self, record: DeploymentRecord) -> None:
        self._records[record.project_id] = record

    def get(self, project_id: str) -> DeploymentRecord:
        """
        Raises:
            DeploymentRecordNotFoundError: If the project was never deployed
        """
        record = self._records.get(project_id)
        if record is None:
            raise DeploymentRecordNotFoundError(project_id)
        return record

    def list(self) -> List[DeploymentRecord]:
        return list(self._records.values())
