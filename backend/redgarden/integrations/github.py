from __future__ import annotations

import httpx

from ..config import Settings


async def dispatch_workflow(settings: Settings, client: httpx.AsyncClient) -> httpx.Response:
    """
    Ask GitHub Actions to run the notification workflow (workflow_dispatch).
    GitHub answers 204 on success.
    """
    settings.require("github_token", "github_repo_owner", "github_repo_name")
    url = (
        f"https://api.github.com/repos/{settings.github_repo_owner}/{settings.github_repo_name}"
        f"/actions/workflows/{settings.github_workflow_file}/dispatches"
    )
    return await client.post(
        url,
        json={"ref": settings.github_ref},
        headers={
            "Authorization": f"Bearer {settings.github_token}",
            "Accept": "application/vnd.github+json",
        },
    )
