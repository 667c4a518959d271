"""Browser login for OnePoint and session cookie extraction."""

import asyncio
import json
import os

from playwright.async_api import BrowserContext, async_playwright

SESSION_COOKIE = "JSESSIONID"
WL_AUTH_COOKIE = "_WL_AUTHCOOKIE_JSESSIONID"
POLL_INTERVAL_S = 1.0


class AuthStateError(Exception):
    """The saved auth state is missing, unreadable or has no session."""


def normalize_host(value: str) -> str:
    value = (value or "").strip().lower()
    for prefix in ("https://", "http://", "."):
        if value.startswith(prefix):
            value = value[len(prefix):]
    return value.rstrip("/")


def cookie_domain_matches(cookie_domain: str, host: str) -> bool:
    domain = normalize_host(cookie_domain)
    host = normalize_host(host)
    if not domain or not host:
        return False
    return domain == host or host.endswith("." + domain)


def _session_values(cookies: list[dict], host: str) -> dict[str, str]:
    values = {}
    for cookie in cookies:
        name = cookie.get("name", "")
        value = cookie.get("value", "")
        if not name or not value:
            continue
        if not cookie_domain_matches(cookie.get("domain", ""), host):
            continue
        if cookie.get("path") not in (None, "", "/"):
            continue
        if name in (SESSION_COOKIE, WL_AUTH_COOKIE):
            values[name] = value
    return values


def session_cookie_header_from_state(state: dict, host: str) -> str:
    """Build a Cookie header for `host` from a playwright storage state."""
    if not normalize_host(host):
        raise AuthStateError("target host is required")

    values = _session_values(state.get("cookies") or [], host)
    if not values.get(SESSION_COOKIE):
        raise AuthStateError(
            f"missing required session cookies for host '{normalize_host(host)}': {SESSION_COOKIE}"
        )

    header = f"{SESSION_COOKIE}={values[SESSION_COOKIE]}"
    if values.get(WL_AUTH_COOKIE):
        header += f"; {WL_AUTH_COOKIE}={values[WL_AUTH_COOKIE]}"
    return header


def session_cookie_header_from_state_file(path: str, host: str) -> str:
    """Read a saved storage state and build the session Cookie header."""
    try:
        with open(path, encoding="utf-8") as f:
            state = json.load(f)
    except FileNotFoundError:
        raise AuthStateError(f"auth state file {path} not found. Run 'login' first!")
    except json.JSONDecodeError as e:
        raise AuthStateError(f"auth state file {path} is not valid JSON: {e.msg}")
    return session_cookie_header_from_state(state, host)


async def _wait_for_session(context: BrowserContext, host: str, timeout_s: float) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while True:
        cookies = await context.cookies()
        if _session_values(cookies, host).get(SESSION_COOKIE):
            return
        if loop.time() >= deadline:
            raise AuthStateError(
                "Timed out waiting for OnePoint session cookies; finish login in the browser "
                "and retry (or increase --timeout)."
            )
        await asyncio.sleep(POLL_INTERVAL_S)


async def _login(home_url: str, host: str, state_file: str, timeout_s: float, headless: bool) -> None:
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless, args=["--start-maximized"])
        try:
            context = await browser.new_context(no_viewport=True)
            page = await context.new_page()

            print(f"[*] Opening {home_url}...")
            await page.goto(home_url)

            print("[!] Complete the login in the opened browser.")
            print(f"    Waiting for OnePoint session cookies (timeout: {int(timeout_s)}s)...")
            await _wait_for_session(context, host, timeout_s)

            await context.storage_state(path=state_file)
        finally:
            await browser.close()


def login(home_url: str, host: str, state_file: str, timeout_s: float = 300, headless: bool = False) -> None:
    """Open a browser, wait for the user to log in, save the storage state."""
    parent = os.path.dirname(os.path.abspath(state_file))
    os.makedirs(parent, mode=0o700, exist_ok=True)
    asyncio.run(_login(home_url, host, state_file, timeout_s, headless))
    print(f"[+] Auth state saved: {state_file}")
