"""
credgate.services.redirects

Redirect target helpers.

Responsibilities:
- Keep post-login/post-change redirects local to this application.
- Build the change-password URL that carries the return target and the forced flag.
"""

from __future__ import annotations

from urllib.parse import urlencode

from credgate.settings import Settings

FORCED_FLAG = "yes"


def is_local_url(url: str | None) -> bool:
    if not url:
        return False
    # "/path" is local; "//host" and "/\host" are protocol-relative escapes.
    if url.startswith("/"):
        return len(url) == 1 or url[1] not in ("/", "\\")
    return url.startswith("~/")


def local_redirect(settings: Settings, return_path: str | None) -> str:
    if return_path and is_local_url(return_path):
        return return_path
    return settings.home_page


def change_password_redirect(settings: Settings, return_path: str | None, *, forced: bool) -> str:
    query: dict[str, str] = {}
    if return_path:
        query["returnUrl"] = return_path
    if forced:
        query["forced"] = FORCED_FLAG
    if not query:
        return settings.change_password_page
    return f"{settings.change_password_page}?{urlencode(query)}"


def parse_forced(raw: str | bool | None) -> bool:
    if isinstance(raw, bool):
        return raw
    return (raw or "").strip().lower() in (FORCED_FLAG, "true", "1")
