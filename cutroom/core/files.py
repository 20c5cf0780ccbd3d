import os
from dataclasses import dataclass
from fastapi import UploadFile

@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        ext = os.path.splitext(self.filename or "")[1].lower()
        return ext if len(ext) <= 10 else ""

async def read_upload(file: UploadFile) -> UploadedFile:
    # Read file fully (for production consider streaming + multipart direct-to-S3)
    data = await file.read()
    return UploadedFile(
        filename=file.filename or "upload.bin",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
