"""
Thread-safe in-memory project storage
"""
import copy
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from lingoforge.core.adapters import FormatAdapter, create_adapter
from lingoforge.core.models import Term
from lingoforge.core.result import OperationResult
from lingoforge.core.terms import apply_term_merge, compute_term_merge
from lingoforge.core.translation import CancellationToken


class ProjectStore:
    """Thread-safe store of uploaded projects, their glossary and running jobs"""

    def __init__(self):
        self._projects: Dict[str, Dict[str, Any]] = {}
        self._runs: Dict[str, CancellationToken] = {}
        self._lock = threading.RLock()  # Use RLock to allow nested locking

    def create_project(self, adapter: FormatAdapter) -> str:
        """Store a freshly loaded adapter and return the new project id"""
        project_id = uuid.uuid4().hex
        with self._lock:
            self._projects[project_id] = {
                'format_id': adapter.format_name,
                'project': adapter.get_project().to_dict(),
                'format_data': adapter.get_format_data(),
                'terms': [],
                'created_at': datetime.now().isoformat(),
                'updated_at': datetime.now().isoformat(),
            }
        return project_id

    def exists(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._projects

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        """Get a project record (returns a deep copy)"""
        with self._lock:
            if project_id not in self._projects:
                return None
            return copy.deepcopy(self._projects[project_id])

    def save_adapter(self, project_id: str, adapter: FormatAdapter) -> bool:
        """Persist the adapter's current project JSON and format data"""
        project = adapter.get_project().to_dict()
        format_data = adapter.get_format_data()
        with self._lock:
            if project_id not in self._projects:
                return False
            record = self._projects[project_id]
            record['project'] = project
            record['format_data'] = format_data
            record['updated_at'] = datetime.now().isoformat()
            return True

    def load_adapter(self, project_id: str) -> Optional[OperationResult[FormatAdapter]]:
        """
        Rebuild the adapter of a stored project.

        Returns None when the project does not exist, otherwise the result of
        restoring it (Ok(adapter) or the Err from ``load_from_json``).
        """
        record = self.get_project(project_id)
        if record is None:
            return None
        adapter = create_adapter(record['format_id'])
        return adapter.load_from_json(record['project'], record['format_data']).map(lambda _: adapter)

    def delete_project(self, project_id: str) -> bool:
        with self._lock:
            self.cancel_run(project_id)
            return self._projects.pop(project_id, None) is not None

    # ---- Glossary ---------------------------------------------------------

    def get_terms(self, project_id: str) -> List[Term]:
        with self._lock:
            record = self._projects.get(project_id)
            if record is None:
                return []
            return [Term.from_dict(t) for t in record['terms']]

    def merge_terms(self, project_id: str, new_terms: List[Term]) -> Optional[List[Term]]:
        """Merge terms into the glossary by slug; returns the merged glossary"""
        with self._lock:
            if project_id not in self._projects:
                return None
            existing = self.get_terms(project_id)
            merged = apply_term_merge(existing, compute_term_merge(existing, new_terms))
            self._projects[project_id]['terms'] = [t.to_dict() for t in merged]
            return merged

    # ---- Translation runs -------------------------------------------------

    def start_run(self, project_id: str) -> Optional[CancellationToken]:
        """Register a run; None when one is already active for this project"""
        with self._lock:
            if project_id in self._runs:
                return None
            token = CancellationToken()
            self._runs[project_id] = token
            return token

    def finish_run(self, project_id: str) -> None:
        with self._lock:
            self._runs.pop(project_id, None)

    def cancel_run(self, project_id: str) -> bool:
        with self._lock:
            token = self._runs.get(project_id)
            if token is None:
                return False
            token.cancel()
            return True

    def is_running(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._runs


# Global instance
_store = None


def get_project_store() -> ProjectStore:
    """Get the global project store instance"""
    global _store
    if _store is None:
        _store = ProjectStore()
    return _store
