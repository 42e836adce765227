# Folder: qport-core/storage/incident_ledger.py
#
# The live incident list the dashboard reads.
# Most-recent-first, unique by id.
#
# Backed by an OrderedDict keyed by incident id, newest at the END:
#   - lookup by id        O(1)
#   - move to front       O(1)  (move_to_end)
#   - replace in place    O(1)  (assigning an existing key keeps its slot)
#
# Not thread-safe on its own - the orchestrator guards it.

from collections import OrderedDict
from typing import List, Optional
from ingestion.event_schema import Incident


class IncidentLedger:

    def __init__(self):
        self._items: "OrderedDict[str, Incident]" = OrderedDict()

    def prepend(self, incident: Incident) -> Incident:
        """Insert as most recent. Any stale record with the same id is dropped."""
        self._items[incident.id] = incident
        self._items.move_to_end(incident.id)
        return incident

    def bring_to_front(self, incident: Incident) -> Incident:
        """
        Cache-hit path: keep the ledger's current record for this id
        (it may carry a newer status), only its position changes.
        Unknown ids are inserted as given.
        """
        current = self._items.get(incident.id)
        if current is None:
            return self.prepend(incident)
        self._items.move_to_end(incident.id)
        return current

    def replace(self, incident: Incident) -> bool:
        """Swap in a modified copy without moving it. False if id unknown."""
        if incident.id not in self._items:
            return False
        self._items[incident.id] = incident
        return True

    def get(self, incident_id: str) -> Optional[Incident]:
        return self._items.get(incident_id)

    def snapshot(self) -> List[Incident]:
        """Most recent first."""
        return list(reversed(self._items.values()))

    def __len__(self):
        return len(self._items)

    def __contains__(self, incident_id: str):
        return incident_id in self._items
