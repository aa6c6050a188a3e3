"""Pydantic schemas for the storage service HTTP contract.

These models are the only place where wire field spellings are known.
Alternate spellings sent by different service versions are normalized
here, so the rest of the core works with one canonical set of names.
"""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from common.constants import LIST_ORDER_BY, LIST_PAGE_SIZE, ROOT_FOLDER_ID


class FileRecord(BaseModel):
    """A file or folder materialized on the storage service."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int = Field(validation_alias=AliasChoices('id', 'ID', 'file_id', 'fileId'))
    name: str = Field(validation_alias=AliasChoices('name', 'Name', 'file_name', 'fileName'))
    parent_id: int = Field(
        default=ROOT_FOLDER_ID,
        validation_alias=AliasChoices('parent_id', 'parentId', 'ParentID'),
    )
    size: int = Field(default=0, validation_alias=AliasChoices('size', 'Size', 'file_size', 'fileSize'))
    hash: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('hash', 'file_hash', 'fileHash'),
    )
    is_dir: bool = Field(default=False, validation_alias=AliasChoices('is_dir', 'isDir', 'IsDir'))

    @field_validator('parent_id', mode='before')
    @classmethod
    def _null_parent_is_root(cls, value: Any) -> Any:
        return ROOT_FOLDER_ID if value is None else value

    @field_validator('size', mode='before')
    @classmethod
    def _null_size_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class HashProbeRequest(BaseModel):
    """Request body for ``POST /file/upload/hash``."""
    file_name: str = Field(min_length=1)
    size: int = Field(ge=0)
    hash: str = Field(min_length=1)
    parent_id: int = ROOT_FOLDER_ID
    is_dir: bool = False


class HashProbeResponse(BaseModel):
    """Response of the instant-upload probe."""

    model_config = ConfigDict(populate_by_name=True)

    instant: bool = False
    file_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices('file_id', 'fileId', 'FileId'),
    )
    reason: str = ''

    @field_validator('reason', mode='before')
    @classmethod
    def _null_reason_is_empty(cls, value: Any) -> Any:
        return '' if value is None else value


class MultipartInitRequest(BaseModel):
    """Request body for ``POST /file/upload/multipart/init``."""
    user_id: int
    file_name: str = Field(min_length=1)
    size: int = Field(ge=0)
    hash: str = Field(min_length=1)
    chunk_size: int = Field(gt=0)
    total_chunks: int = Field(ge=1)
    parent_id: int = ROOT_FOLDER_ID


class MultipartInitResponse(BaseModel):
    """Session negotiation result; ``instant`` means no chunk is needed."""

    model_config = ConfigDict(populate_by_name=True)

    instant: bool = False
    upload_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('upload_id', 'uploadId', 'UploadID'),
    )
    uploaded: List[int] = Field(default_factory=list)

    @field_validator('upload_id', mode='before')
    @classmethod
    def _blank_upload_id_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator('uploaded', mode='before')
    @classmethod
    def _null_uploaded_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class MultipartCompleteRequest(BaseModel):
    """Request body for ``POST /file/upload/multipart/complete``."""
    file_hash: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    file_size: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    parent_id: int = ROOT_FOLDER_ID
    is_dir: bool = False


class FileListRequest(BaseModel):
    """Request body for ``POST /file/list``."""
    parent_id: int = ROOT_FOLDER_ID
    page: int = 1
    page_size: int = LIST_PAGE_SIZE
    order_by: str = LIST_ORDER_BY
    order_desc: bool = False


class FileListResponse(BaseModel):
    """Directory listing."""
    files: List[FileRecord] = Field(default_factory=list)

    @field_validator('files', mode='before')
    @classmethod
    def _null_files_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class CreateFolderRequest(BaseModel):
    """Request body for ``POST /file/folder``."""
    parent_id: int = ROOT_FOLDER_ID
    name: str = Field(min_length=1)


def parse_completion(payload: Any) -> Optional[FileRecord]:
    """
    Extract the materialized FileRecord from a completion payload.

    Services either return the record itself, wrap it under ``file``, or
    only confirm the assembly with a message.

    Args:
        payload: Unwrapped JSON payload of the completion call

    Returns:
        FileRecord when the payload carries one, otherwise None
    """
    if not isinstance(payload, dict):
        return None
    candidate = payload.get('file', payload)
    if not isinstance(candidate, dict):
        return None
    try:
        return FileRecord.model_validate(candidate)
    except ValueError:
        return None
