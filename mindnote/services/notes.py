"""
Notes API client built on BaseAPIService.
"""

from datetime import timedelta
from typing import Any

from mindnote.services.batch import BatchOperationResult, BatchOptions
from mindnote.services.client import BaseAPIService, RequestOptions
from mindnote.services.errors import ValidationError
from mindnote.services.responses import ApiResponse, PaginatedResponse, utc_timestamp
from mindnote.services.validation import ItemsRule, LengthRule, Required, TypeRule

MAX_PAGE_SIZE = 100
MAX_BATCH_SIZE = 100


NOTE_RULES = {
    "title": [Required(), TypeRule(str), LengthRule(1, 255)],
    "content": [Required(), TypeRule(str)],
    "tags": [TypeRule(list), ItemsRule(max_items=20)],
}

NOTE_UPDATE_RULES = {
    "title": [TypeRule(str), LengthRule(1, 255)],
    "content": [TypeRule(str)],
    "tags": [TypeRule(list), ItemsRule(max_items=20)],
}


class NotesService(BaseAPIService):
    """
    Notes CRUD over the backend REST API.

    Reads of single notes are cached by the core; list calls pass filters as
    query parameters so each filter combination gets its own cache entry.
    """

    async def create_note(self, data: dict[str, Any]) -> ApiResponse[Any]:
        self.validate_params(data, NOTE_RULES)
        self.log("info", "Creating note", title=data.get("title"))
        return await self.post("/notes", data)

    async def get_note(self, note_id: str, include_content: bool = True) -> ApiResponse[Any]:
        if not note_id:
            raise ValidationError("Invalid note ID")
        return await self.get(
            f"/notes/{note_id}",
            RequestOptions(params={"includeContent": include_content}),
        )

    async def get_notes(
        self,
        filters: dict[str, Any] | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PaginatedResponse[Any]:
        params = {
            "page": page,
            "limit": min(limit, MAX_PAGE_SIZE),
            **(filters or {}),
        }
        return await self.get_paginated(
            "/notes",
            params,
            RequestOptions(custom_headers={"X-Filter-Applied": "true"}),
        )

    async def update_note(self, note_id: str, data: dict[str, Any]) -> ApiResponse[Any]:
        if not note_id:
            raise ValidationError("Invalid note ID")
        self.validate_params(data, NOTE_UPDATE_RULES)
        return await self.put(f"/notes/{note_id}", data)

    async def delete_note(self, note_id: str, permanent: bool = False) -> ApiResponse[Any]:
        if not note_id:
            raise ValidationError("Invalid note ID")
        return await self.delete(
            f"/notes/{note_id}",
            RequestOptions(params={"permanent": permanent}),
        )

    async def auto_save_note(self, note_id: str, content: str) -> ApiResponse[Any]:
        if not note_id:
            raise ValidationError("Invalid note ID")
        if not content or not isinstance(content, str):
            raise ValidationError("Invalid content")
        return await self.post(
            f"/notes/{note_id}/autosave",
            {"content": content, "timestamp": utc_timestamp()},
            RequestOptions(
                custom_headers={"X-Auto-Save": "true", "X-Save-Reason": "auto_save"},
                # Autosaves are superseded by the next one
                retries=0,
            ),
        )

    async def get_similar_notes(self, note_id: str, limit: int = 5) -> ApiResponse[Any]:
        return await self.get(
            f"/notes/{note_id}/similar",
            RequestOptions(params={"limit": limit}, cache_ttl=timedelta(minutes=1)),
        )

    async def delete_notes(
        self,
        note_ids: list[str],
        options: BatchOptions | None = None,
    ) -> BatchOperationResult[Any]:
        """Delete many notes, one request per note."""
        if not note_ids:
            raise ValidationError("Invalid note IDs for batch operation")
        if len(note_ids) > MAX_BATCH_SIZE:
            raise ValidationError(
                f"Maximum {MAX_BATCH_SIZE} notes allowed per batch operation"
            )

        async def delete_one(note_id: str) -> str:
            await self.delete_note(note_id)
            return note_id

        return await self.batch_operation(note_ids, delete_one, options)
