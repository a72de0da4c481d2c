"""Group Sync: Channex property groups, matched by title"""

from typing import Dict, Optional

from ..errors import PreconditionError
from ..id_mapping import EntityKind
from .base import EntitySyncService, SyncTarget


class GroupSyncService(EntitySyncService):
    kind = EntityKind.GROUP

    def load(self, target: SyncTarget) -> None:
        if not target.title:
            target.title = target.record.get("title")

    def check_preconditions(self, target: SyncTarget) -> None:
        if not target.title:
            raise PreconditionError("Group title is required for Channex sync.", fields={"title": ["required"]})

    def fetch_remote(self, remote_id: str) -> Optional[Dict]:
        return self.channex.get_group(remote_id)

    def find_by_natural_key(self, target: SyncTarget) -> Optional[Dict]:
        return self.channex.find_group_by_title(target.title)

    def build_create_payload(self, target: SyncTarget) -> Dict:
        return {"title": target.title}

    def build_update_payload(self, target: SyncTarget, remote_id: str) -> Dict:
        return {"title": target.title}

    def create_remote(self, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.create_group(payload)

    def update_remote(self, remote_id: str, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.update_group(remote_id, payload)
