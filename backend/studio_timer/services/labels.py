"""In-memory label collaborator.

Timers only hold a label id; the store resolves ids to display text and
provides the ordered list used by 1-based label buttons on macro pads.
"""

import threading
from typing import List, Optional

from studio_timer.models import Label

MAX_LABEL_LENGTH = 10

DEFAULT_LABELS = [
    ('1', ''),
    ('2', 'VTR'),
    ('3', 'BREAK'),
    ('4', 'LIVE'),
    ('5', 'SPORT'),
    ('6', 'TALK'),
    ('7', 'Q&A'),
]


class LabelStore:
    def __init__(self, labels=None):
        self._lock = threading.Lock()
        seed = DEFAULT_LABELS if labels is None else labels
        self._labels = {
            label_id: Label(id=label_id, text=text[:MAX_LABEL_LENGTH], order=idx + 1)
            for idx, (label_id, text) in enumerate(seed)
        }

    def list(self) -> List[Label]:
        with self._lock:
            return sorted(self._labels.values(), key=lambda lbl: lbl.order)

    def get(self, label_id) -> Optional[Label]:
        with self._lock:
            return self._labels.get(str(label_id))

    def resolve(self, label_id) -> str:
        label = self.get(label_id) if label_id else None
        return label.text if label else ''

    def by_index(self, index) -> Optional[Label]:
        """1-based position in display order."""
        ordered = self.list()
        if isinstance(index, bool) or not isinstance(index, int):
            return None
        if 1 <= index <= len(ordered):
            return ordered[index - 1]
        return None
