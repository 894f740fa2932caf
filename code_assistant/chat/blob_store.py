"""
In-memory store for text opened in a new tab. Entries live until the process exits.
"""

import uuid
from typing import Dict, Optional


class BlobStore:
    def __init__(self):
        self._blobs: Dict[str, str] = {}

    def put(self, text: str) -> str:
        blob_id = uuid.uuid4().hex
        self._blobs[blob_id] = text
        return blob_id

    def get(self, blob_id: str) -> Optional[str]:
        return self._blobs.get(blob_id)

    def __len__(self) -> int:
        return len(self._blobs)
