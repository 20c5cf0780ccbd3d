import os
from urllib.parse import quote
from cutroom.platform.ports.object_storage import ObjectStoragePort
from cutroom.core.config import settings

class LocalFilesystemStorage(ObjectStoragePort):
    def __init__(self, root: str | None = None, base_url: str | None = None):
        self.root = os.path.abspath(root or settings.LOCAL_STORAGE_ROOT)
        self.base_url = (base_url or settings.PUBLIC_MEDIA_BASE_URL or "").rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        path = os.path.normpath(os.path.join(self.root, key.lstrip("/")))
        if os.path.commonpath([self.root, path]) != self.root:
            raise ValueError(f"Storage key escapes the storage root: {key!r}")
        return path

    def public_url(self, key: str) -> str:
        # With a base URL configured (nginx / static mount) hand that out; otherwise a file:// URL for dev.
        if self.base_url:
            return f"{self.base_url}/{quote(key.strip('/'))}"
        return f"file://{quote(self._path(key))}"

    def presign_download(self, key: str, expires_seconds: int = 900, filename: str | None = None) -> str:
        # Local files are not access-controlled; the public URL is the download URL.
        return self.public_url(key)

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)
