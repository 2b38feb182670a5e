"""
helpmate/api/integration.py

Purpose: Website integration endpoints

Public:
- POST /chat: message from the embedded widget (authenticated by API key)

Private (owner only):
- CRUD, API key rotation, embed snippet
- Knowledge base URLs and documents
"""

from fastapi import APIRouter, Depends, status

from helpmate.core.logging import get_logger
from helpmate.core.security import get_current_user
from helpmate.schemas.chat import ChatReply
from helpmate.schemas.common import serialize_doc, serialize_many
from helpmate.schemas.integration import (
    ExternalChatRequest,
    IntegrationCreate,
    IntegrationUpdate,
    KnowledgeDocument,
    KnowledgeDocumentRemoveRequest,
    KnowledgeUrlRequest,
)
from helpmate.services import integration_service

logger = get_logger(__name__)
router = APIRouter()


# ============================================================
# PUBLIC
# ============================================================

@router.post("/chat", response_model=ChatReply)
async def external_chat(data: ExternalChatRequest):
    """
    Chat endpoint called by the widget on third-party websites.

    The returned ``chat_id`` identifies the visitor's session and should be
    sent back with the next message.
    """
    return await integration_service.process_external_chat(data)


# ============================================================
# PRIVATE
# ============================================================

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_integration(data: IntegrationCreate, user: dict = Depends(get_current_user)):
    integration = await integration_service.create_integration(user, data)
    return {"success": True, "integration": serialize_doc(integration)}


@router.get("/")
async def list_integrations(user: dict = Depends(get_current_user)):
    integrations = await integration_service.list_integrations(user)
    return {"success": True, "integrations": serialize_many(integrations)}


@router.get("/{integration_id}")
async def get_integration(integration_id: str, user: dict = Depends(get_current_user)):
    integration = await integration_service.get_integration(user, integration_id)
    return {"success": True, "integration": serialize_doc(integration)}


@router.put("/{integration_id}")
async def update_integration(
    integration_id: str,
    data: IntegrationUpdate,
    user: dict = Depends(get_current_user),
):
    integration = await integration_service.update_integration(user, integration_id, data)
    return {"success": True, "integration": serialize_doc(integration)}


@router.delete("/{integration_id}")
async def delete_integration(integration_id: str, user: dict = Depends(get_current_user)):
    await integration_service.delete_integration(user, integration_id)
    return {"success": True, "message": "Integration deleted successfully"}


@router.post("/{integration_id}/generate-key")
async def generate_key(integration_id: str, user: dict = Depends(get_current_user)):
    api_key = await integration_service.regenerate_api_key(user, integration_id)
    return {"success": True, "api_key": api_key}


@router.get("/{integration_id}/widget-code")
async def widget_code(integration_id: str, user: dict = Depends(get_current_user)):
    integration = await integration_service.get_integration(user, integration_id)
    return {"success": True, "widget_code": integration_service.build_widget_code(integration)}


@router.post("/{integration_id}/knowledge/url")
async def add_knowledge_url(
    integration_id: str,
    data: KnowledgeUrlRequest,
    user: dict = Depends(get_current_user),
):
    urls = await integration_service.add_knowledge_url(user, integration_id, data.url)
    return {"success": True, "urls": urls}


@router.delete("/{integration_id}/knowledge/url")
async def remove_knowledge_url(
    integration_id: str,
    data: KnowledgeUrlRequest,
    user: dict = Depends(get_current_user),
):
    urls = await integration_service.remove_knowledge_url(user, integration_id, data.url)
    return {"success": True, "urls": urls}


@router.post("/{integration_id}/knowledge/documents")
async def add_knowledge_document(
    integration_id: str,
    data: KnowledgeDocument,
    user: dict = Depends(get_current_user),
):
    documents = await integration_service.add_knowledge_document(user, integration_id, data)
    return {"success": True, "documents": documents}


@router.delete("/{integration_id}/knowledge/documents")
async def remove_knowledge_document(
    integration_id: str,
    data: KnowledgeDocumentRemoveRequest,
    user: dict = Depends(get_current_user),
):
    documents = await integration_service.remove_knowledge_document(user, integration_id, data.name)
    return {"success": True, "documents": documents}
