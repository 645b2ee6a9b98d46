"""
Object storage for uploaded images, backed by GridFS.

Uploaded files are served back through ``GET /api/files/{file_id}``, which
is the public URL returned by ``upload``.
"""
from typing import Optional

from bson import ObjectId
from fastapi import Depends
from gridfs import GridFS
from gridfs.errors import NoFile
from pymongo.database import Database

import config
from database import get_db


class GridFSStorage:
    def __init__(self, db: Database, public_base_url: str):
        self.fs = GridFS(db)
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, data: bytes, filename: str, folder: str, content_type: Optional[str] = None) -> str:
        file_id = self.fs.put(data, filename=f"{folder}/{filename}", content_type=content_type, folder=folder)
        return f"{self.public_base_url}/api/files/{file_id}"

    def open(self, file_id: ObjectId):
        """Return the stored file, or None when there is no such file."""
        try:
            return self.fs.get(file_id)
        except NoFile:
            return None


def get_storage(db: Database = Depends(get_db)) -> GridFSStorage:
    return GridFSStorage(db, config.PUBLIC_BASE_URL)
