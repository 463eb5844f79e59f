"""
Media Routes.

Summary
-------
Endpoints include:
  - Upload a file (admin), as multipart form data or base64 JSON
  - List media records
  - Delete a media record and its file (admin)
  - Serve a stored file
"""

from base64 import b64decode
from binascii import Error as BinasciiError
from dataclasses import dataclass
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse, ORJSONResponse
from pydantic import BaseModel, Field, ValidationError
from starlette.datastructures import UploadFile
from starlette.responses import Response
from starlette.status import (
    HTTP_200_OK,
    HTTP_201_CREATED,
    HTTP_204_NO_CONTENT,
    HTTP_400_BAD_REQUEST,
)

from klog.dependencies import AdminDep, MediaServiceDep, rate_limit
from klog.schemas import MediaResponse, OffsetPaginatedResponse
from klog.services.media import FileData

router = APIRouter(prefix="/media", tags=["🖼️ Media"], dependencies=[Depends(rate_limit)])


class Base64Upload(BaseModel):
    """JSON upload body."""

    file_name: str = Field(..., min_length=1, max_length=255)
    data: str = Field(..., min_length=1, description="Base64-encoded file content")
    mime_type: str = Field(..., min_length=1)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=HTTP_400_BAD_REQUEST, detail=detail)


async def read_upload(request: Request) -> FileData:
    """
    Extract the uploaded file from a multipart or JSON request.

    Raises
    ------
    HTTPException
        400 if the body is missing the file or is not decodable.
    """
    content_type = request.headers.get("content-type", "")

    if "multipart/form-data" in content_type:
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise _bad_request("Missing 'file' form field")
        return FileData(
            file_name=upload.filename or "",
            content=await upload.read(),
            mime_type=upload.content_type or "",
        )

    if "application/json" in content_type:
        try:
            body = Base64Upload.model_validate_json(await request.body())
            content = b64decode(body.data, validate=True)
        except (ValidationError, BinasciiError, ValueError) as e:
            raise _bad_request(f"Invalid upload body: {e}") from e
        return FileData(file_name=body.file_name, content=content, mime_type=body.mime_type)

    raise _bad_request("Unsupported content type")


@dataclass(frozen=True)
class PaginationQuery:
    """
    Query container for pagination.

    Parameters
    ----------
    skip : int
        Number of records to skip.
    limit : int
        Maximum number of records to return.
    """

    skip: int = 0
    limit: int = 10


def get_pagination_query(
    skip: Annotated[int, Query(ge=0, description="Number of records to skip")] = 0,
    limit: Annotated[
        int,
        Query(ge=1, le=100, description="Maximum number of records to return"),
    ] = 10,
) -> PaginationQuery:
    return PaginationQuery(skip=skip, limit=limit)


@router.post(
    "",
    response_class=ORJSONResponse,
    response_model=MediaResponse,
    status_code=HTTP_201_CREATED,
    summary="Upload a media file",
    description=(
        "Upload an image as multipart form data (field `file`) or as JSON "
        "`{file_name, data, mime_type}` with base64 `data`. Re-uploading identical "
        "content returns the existing record with status 200."
    ),
    responses={
        200: {"description": "Identical content already stored"},
        413: {"description": "File too large"},
        415: {"description": "Unsupported file type"},
    },
    operation_id="media_upload",
)
async def upload_media(
    request: Request,
    service: MediaServiceDep,
    _admin: AdminDep,
) -> ORJSONResponse:
    """
    Upload a media file.

    Parameters
    ----------
    request : Request
        Request carrying the file.
    service : MediaService
        Media service.
    _admin : TokenData
        Verified admin token.

    Returns
    -------
    ORJSONResponse
        The stored media record.
    """
    file = await read_upload(request)
    media, created = await service.upload(file)
    return ORJSONResponse(
        content=media.model_dump(mode="json"),
        status_code=HTTP_201_CREATED if created else HTTP_200_OK,
    )


@router.get(
    "",
    response_class=ORJSONResponse,
    response_model=OffsetPaginatedResponse[MediaResponse],
    summary="List media files",
    operation_id="media_list",
)
async def list_media(
    pagination: Annotated[PaginationQuery, Depends(get_pagination_query)],
    service: MediaServiceDep,
) -> OffsetPaginatedResponse[MediaResponse]:
    items, total = await service.list_media(skip=pagination.skip, limit=pagination.limit)
    return OffsetPaginatedResponse[MediaResponse](
        data=items,
        total=total,
        skip=pagination.skip,
        limit=pagination.limit,
    )


@router.delete(
    "/{media_id}",
    status_code=HTTP_204_NO_CONTENT,
    summary="Delete a media file",
    description="Delete the record now; the file is removed in the background.",
    responses={404: {"description": "Media not found"}},
    operation_id="media_delete",
)
async def delete_media(media_id: int, service: MediaServiceDep, _admin: AdminDep) -> Response:
    await service.delete(media_id)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.get(
    "/files/{file_name}",
    response_class=FileResponse,
    summary="Serve a media file",
    responses={
        400: {"description": "Invalid file name"},
        403: {"description": "Access denied"},
        404: {"description": "File not found"},
    },
    operation_id="media_serve_file",
)
async def serve_media_file(file_name: str, service: MediaServiceDep) -> FileResponse:
    path = await service.resolve_file(file_name)
    return FileResponse(path)
