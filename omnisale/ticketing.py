# omnisale/ticketing.py
import logging
from typing import Any, Dict

import httpx

from .config import settings

logger = logging.getLogger(__name__)


async def create_ticket(summary: str, description: str, cfg=settings) -> Dict[str, Any]:
    """Open a Jira task. Returns ``{"success": ..., ...}`` and never raises."""
    if not (cfg.jira_site and cfg.jira_email and cfg.jira_api_token and cfg.jira_project_key):
        logger.error("[TICKET] Jira env missing; ticket not created: %s", summary)
        return {"success": False, "error": "Missing Jira environment variables"}

    payload = {
        "fields": {
            "project": {"key": cfg.jira_project_key},
            "summary": summary,
            "description": description,
            "issuetype": {"name": "Task"},
        }
    }
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.post(
                f"{cfg.jira_site.rstrip('/')}/rest/api/3/issue",
                json=payload,
                auth=(cfg.jira_email, cfg.jira_api_token),
            )
            r.raise_for_status()
            key = r.json().get("key")
    except (httpx.HTTPError, ValueError) as e:
        logger.error("[TICKET] Jira create ticket error: %s", e)
        return {"success": False, "error": str(e)}

    logger.info("[TICKET] Jira ticket created: %s", key)
    return {"success": True, "issue_key": key}
