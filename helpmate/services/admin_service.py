"""
helpmate/services/admin_service.py

Purpose: Platform-wide figures for administrators
"""

from typing import Any, Dict

from helpmate.core.config import settings
from helpmate.db.mongo import (
    get_chats_collection,
    get_integrations_collection,
    get_subscriptions_collection,
    get_users_collection,
)
from helpmate.services.session_store import scrape_cache, session_store


async def get_dashboard_stats() -> Dict[str, Any]:
    chats = get_chats_collection()
    return {
        "total_users": await get_users_collection().count_documents({}),
        "total_integrations": await get_integrations_collection().count_documents({}),
        "active_integrations": await get_integrations_collection().count_documents({"active": True}),
        "total_chats": await chats.count_documents({}),
        "widget_chats": await chats.count_documents({"source": "widget"}),
        "escalated_chats": await chats.count_documents({"escalated_to_human": True}),
        "active_subscriptions": await get_subscriptions_collection().count_documents(
            {"status": {"$in": ["active", "trial"]}}
        ),
        "live_sessions": len(session_store),
        "cached_pages": len(scrape_cache),
    }


def get_public_settings() -> Dict[str, Any]:
    """
    Runtime settings safe to show in the admin panel (no secrets).
    """
    return {
        "environment": settings.ENVIRONMENT,
        "openai_model": settings.OPENAI_MODEL,
        "openai_title_model": settings.OPENAI_TITLE_MODEL,
        "llm_configured": bool(settings.OPENAI_API_KEY),
        "public_base_url": settings.PUBLIC_BASE_URL,
        "session_ttl_hours": settings.SESSION_TTL_HOURS,
        "session_history_limit": settings.SESSION_HISTORY_LIMIT,
        "max_scrape_urls": settings.MAX_SCRAPE_URLS,
        "scrape_cache_ttl_seconds": settings.SCRAPE_CACHE_TTL_SECONDS,
        "max_section_chars": settings.MAX_SECTION_CHARS,
        "context_char_budget": settings.CONTEXT_CHAR_BUDGET,
        "context_summarize_overflow": settings.CONTEXT_SUMMARIZE_OVERFLOW,
        "summary_max_tokens": settings.SUMMARY_MAX_TOKENS,
        "trial_days": settings.TRIAL_DAYS,
    }
