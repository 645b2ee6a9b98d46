from fastapi import APIRouter, Depends, Response

from errors import ApiError
from storage import GridFSStorage, get_storage
from routers.common import object_id

router = APIRouter(tags=["files"])


@router.get("/api/files/{file_id}")
def serve_file(file_id: str, storage: GridFSStorage = Depends(get_storage)):
    stored = storage.open(object_id(file_id))
    if stored is None:
        raise ApiError(404, "File not found")
    return Response(
        content=stored.read(),
        media_type=stored.content_type or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=31536000"},
    )
