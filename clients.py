"""API client for the OnePoint REST endpoints."""

from datetime import datetime

import requests

from models import Activity, LookupSnapshot, PersistResult, Project, RemoteLineItem, Skill
from utils import HOME_PATH, format_day

SERVICE = "OnePoint"
DEFAULT_TIMEOUT = 60


class ApiError(Exception):
    """User-friendly API error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _handle_api_error(response: requests.Response, service: str) -> str:
    """Convert HTTP errors to user-friendly messages."""
    status = response.status_code

    messages = {
        401: f"{service}: Authentication failed. Run 'login' again to refresh the session!",
        403: f"{service}: Access denied. The session may have expired, run 'login' again!",
        404: f"{service}: Resource not found. Check onepoint.url in config.json!",
        429: f"{service}: Too many requests. Wait a moment and try again.",
        500: f"{service}: Server error. The service may be temporarily unavailable.",
        502: f"{service}: Bad gateway. The service may be temporarily unavailable.",
        503: f"{service}: Service unavailable. Try again later.",
    }

    message = messages.get(status, f"{service}: HTTP {status} - {response.reason}")
    body = (response.text or "").strip()[:200]
    if body:
        message += f" ({body})"
    return message


class OnePointClient:
    """Client for the OnePoint worklog and lookup API."""

    def __init__(
        self,
        base_url: str,
        session_cookies: str = "",
        referer_url: str | None = None,
        user_agent: str = "onepoint-sync/1.0",
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        base_url = base_url.strip().rstrip("/")
        if not base_url:
            raise ValueError("base URL is required")
        self.base_url = base_url
        self.referer_url = referer_url or base_url + HOME_PATH
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json, text/javascript, */*; q=0.01",
                "X-Requested-With": "XMLHttpRequest",
                "Referer": self.referer_url,
                "User-Agent": user_agent,
            }
        )
        if session_cookies:
            self.session.headers["Cookie"] = session_cookies

    def _request(self, method: str, path: str, payload=None):
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.ConnectionError:
            raise ApiError(f"{SERVICE}: Cannot connect to {self.base_url}. Check your network!")
        except requests.exceptions.Timeout:
            raise ApiError(f"{SERVICE}: {method} {path} timed out after {self.timeout}s.")

        if not r.ok:
            raise ApiError(_handle_api_error(r, SERVICE), r.status_code)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            raise ApiError(f"{SERVICE}: Could not decode response of {method} {path}.", r.status_code)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def list_projects(self) -> list[Project]:
        data = self._request("POST", "/OPServices/resources/OpProjects/getAllUserProjects?mode=all") or []
        return [
            Project(id=int(p["opId"]), name=p.get("opName", ""), archived=str(p.get("opArchived") or ""))
            for p in data
        ]

    def list_activities(self) -> list[Activity]:
        data = self._request("POST", "/OPServices/resources/OpProjects/getAllUserActivities?mode=all") or []
        return [
            Activity(
                id=int(a["activityId"]),
                name=a.get("name", ""),
                project_node_id=int(a.get("projectNodeId", 0)),
                locked=bool(a.get("locked", False)),
            )
            for a in data
        ]

    def list_skills(self) -> list[Skill]:
        data = self._request("POST", "/OPServices/resources/OpProjects/getAllUserSkills?mode=all") or []
        return [
            Skill(skill_id=int(s["skillId"]), name=s.get("name", ""), activity_id=int(s.get("activityId", 0)))
            for s in data
        ]

    def fetch_lookup_snapshot(self) -> LookupSnapshot:
        """Fetch all projects, activities and skills for name resolution."""
        return LookupSnapshot(
            projects=self.list_projects(),
            activities=self.list_activities(),
            skills=self.list_skills(),
        )

    # ------------------------------------------------------------------
    # Worklogs
    # ------------------------------------------------------------------

    def get_filtered_worklogs(self, date_from: datetime, date_to: datetime) -> list[RemoteLineItem]:
        path = (
            f"/OPServices/resources/OpWorklogs/{format_day(date_from)}:{format_day(date_to)}"
            "/getFilteredWorklogs"
        )
        data = self._request("GET", path) or {}
        try:
            return [RemoteLineItem.from_dict(item) for item in data.get("worklogs") or []]
        except (AttributeError, TypeError, ValueError) as e:
            raise ApiError(f"{SERVICE}: Could not decode worklogs of GET {path}: {e}")

    def get_day_worklogs(self, day: datetime) -> list[RemoteLineItem]:
        """Fetch all existing line items of one day, locked ones included."""
        return self.get_filtered_worklogs(day, day)

    def persist_worklogs(self, day: datetime, worklogs: list[RemoteLineItem]) -> list[PersistResult]:
        """Replace the day's unlocked line items with `worklogs`."""
        if not worklogs:
            raise ApiError(f"{SERVICE}: persist payload for {format_day(day)} must not be empty")
        path = f"/OPServices/resources/OpWorklogs/{format_day(day)}/persistWorklogs"
        data = self._request("POST", path, [w.to_payload() for w in worklogs]) or []
        try:
            return [PersistResult.from_dict(item) for item in data]
        except (AttributeError, TypeError, ValueError) as e:
            raise ApiError(f"{SERVICE}: Could not decode persist results of POST {path}: {e}")
