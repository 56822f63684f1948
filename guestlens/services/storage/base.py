"""Object storage capability used by the photo pipeline."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class StoredObject:
    """Bytes of a stored object plus the content type it was saved with."""
    data: bytes
    content_type: str = 'application/octet-stream'


class ObjectStore(ABC):
    """
    Minimal object store interface.

    Methods are blocking; async callers go through ``run_blocking``.
    """

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> None:
        pass

    @abstractmethod
    def get(self, key: str) -> StoredObject:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def head(self, key: str) -> bool:
        """True if the object exists."""
        pass

    @abstractmethod
    def list(self, prefix: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def sign_put(self, key: str, ttl: int, content_type: str) -> str:
        """Signed URL allowing one direct PUT of ``key``."""
        pass

    @abstractmethod
    def sign_get(
        self,
        key: str,
        ttl: int,
        filename: Optional[str] = None,
        inline: bool = False,
    ) -> str:
        """Signed URL for reading ``key``."""
        pass


def generate_photo_key(event_id: int, filename: str, timestamp_ms: int, token: str) -> str:
    """
    Object key for a new original: events/{event_id}/photos/{ms}-{token}.{ext}

    The extension comes from the client filename, lowercased, defaulting to jpg.
    """
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else 'jpg'
    ext = ''.join(c for c in ext if c.isalnum()) or 'jpg'
    return f"events/{event_id}/photos/{timestamp_ms}-{token}.{ext}"


def photo_key_prefix(event_id: int) -> str:
    return f"events/{event_id}/photos/"


def derive_thumbnail_key(original_key: str, size: str) -> str:
    """
    Derivative key for an original.

    events/1/photos/abc.jpg -> events/1/photos/thumbs/sm-abc.jpg
    """
    if '/' in original_key:
        directory, filename = original_key.rsplit('/', 1)
        return f"{directory}/thumbs/{size}-{filename}"
    return f"thumbs/{size}-{original_key}"
