from __future__ import annotations

"""
REST surface for shared documents.

Every route requires a verified bearer token (``current_caller``); document
routes then consult ``PermissionGate`` for the capability they need. Blocking
record-store I/O runs in a worker thread so handlers never stall the loop.
"""

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from cowrite.docs import Capability, role_from_str
from cowrite.server.core.services import Services, current_caller, get_services

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/docs", tags=["Documents"])


class DocumentCreateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=512)
    content: Any = None

    model_config = ConfigDict(extra="forbid")


class DocumentUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=512)
    content: Any = None

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(include=self.model_fields_set)


class ShareRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    role: str = Field(..., min_length=1, max_length=32)

    model_config = ConfigDict(extra="forbid")


class RemoveAccessRequest(BaseModel):
    user_id: str = Field(..., alias="userIdToRemove", min_length=1, max_length=256)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class UserDetailsRequest(BaseModel):
    user_ids: List[str] = Field(default_factory=list, alias="userIds", max_length=500)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# Collection ---------------------------------------------------------------------
@router.get("")
async def list_documents(
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> List[Dict[str, Any]]:
    documents = await asyncio.to_thread(services.permissions.documents_for, caller_id)
    return [document.summary() for document in documents]


@router.post("", status_code=201)
async def create_document(
    request: DocumentCreateRequest,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    document = await asyncio.to_thread(
        services.permissions.create_document,
        caller_id,
        title=request.title,
        content=request.content,
    )
    return document.as_dict(viewer_id=caller_id)


@router.post("/users/details")
async def user_details(
    request: UserDetailsRequest,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> List[Dict[str, str]]:
    return services.accounts.profiles(request.user_ids)


# Single document ----------------------------------------------------------------
@router.get("/{doc_id}")
async def get_document(
    doc_id: str,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    document = await asyncio.to_thread(services.permissions.document, doc_id)
    await asyncio.to_thread(
        services.gate.check_access, doc_id, caller_id, Capability.READ
    )
    return document.as_dict(viewer_id=caller_id)


@router.put("/{doc_id}")
async def update_document(
    doc_id: str,
    request: DocumentUpdateRequest,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    await asyncio.to_thread(
        services.gate.check_access, doc_id, caller_id, Capability.WRITE
    )
    changes = {
        name: value for name, value in request.changes().items() if value is not None
    }
    document = await asyncio.to_thread(services.store.patch, doc_id, changes)
    LOGGER.debug(
        "Document %s updated by %s (%s)", doc_id, caller_id, ",".join(sorted(changes))
    )
    return document.as_dict(viewer_id=caller_id)


@router.delete("/{doc_id}", status_code=204)
async def delete_document(
    doc_id: str,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> Response:
    await asyncio.to_thread(services.permissions.delete_document, doc_id, caller_id)
    return Response(status_code=204)


# Permissions --------------------------------------------------------------------
@router.get("/{doc_id}/permissions")
async def get_permissions(
    doc_id: str,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    await asyncio.to_thread(
        services.gate.check_access, doc_id, caller_id, Capability.READ
    )
    document = await asyncio.to_thread(services.permissions.document, doc_id)
    return document.permissions()


@router.post("/{doc_id}/share")
async def share_document(
    doc_id: str,
    request: ShareRequest,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    await asyncio.to_thread(
        services.gate.check_access, doc_id, caller_id, Capability.SHARE
    )
    role = role_from_str(request.role)
    document = await asyncio.to_thread(
        services.permissions.share, doc_id, caller_id, request.email, role
    )
    return document.permissions()


@router.post("/{doc_id}/remove_access")
async def remove_access(
    doc_id: str,
    request: RemoveAccessRequest,
    caller_id: str = Depends(current_caller),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    document = await asyncio.to_thread(
        services.permissions.revoke, doc_id, caller_id, request.user_id
    )
    return document.permissions()


__all__ = ["router"]
