"""Асинхронный клиент Canvas LMS REST API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from canvas_mcp.core.config import CANVAS_SETTINGS, CanvasSettings

logger = logging.getLogger("canvas_mcp.services.canvas_client")


class CanvasAPIError(RuntimeError):
    """Canvas вернул не-2xx статус или запрос не удалось выполнить."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(slots=True)
class CanvasAPIResponse:
    data: Any
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    links: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"data": self.data, "status": self.status}
        if self.links:
            payload["links"] = self.links
        return payload


def _canvas_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Убирает None и переводит списки в формат Canvas `key[]=a&key[]=b`."""
    cleaned: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            cleaned[f"{key}[]"] = list(value)
        elif isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = value
    return cleaned


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def _error_message(response: httpx.Response, body: Any) -> str:
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("message"):
                return str(first["message"])
        if body.get("message"):
            return str(body["message"])
    return f"Canvas API returned {response.status_code} {response.reason_phrase}".strip()


class CanvasAPIClient:
    """Тонкая обёртка над Canvas API для одного access token."""

    def __init__(
        self,
        access_token: str,
        *,
        settings: CanvasSettings = CANVAS_SETTINGS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if settings.user_agent:
            headers["User-Agent"] = settings.user_agent
        self._client = httpx.AsyncClient(
            base_url=settings.api_url,
            headers=headers,
            timeout=(settings.timeout_ms / 1000) or None,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "CanvasAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> CanvasAPIResponse:
        logger.debug("Canvas API Request: %s %s", method, endpoint)
        response = await self._client.request(method, endpoint, params=_canvas_params(params), json=json)

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            try:
                delay = float(retry_after) if retry_after else self._settings.retry_delay_ms / 1000
            except ValueError:
                delay = self._settings.retry_delay_ms / 1000
            logger.warning("Canvas API rate limited, retrying %s %s in %.1fs", method, endpoint, delay)
            await asyncio.sleep(delay)
            response = await self._client.request(method, endpoint, params=_canvas_params(params), json=json)

        logger.debug("Canvas API Response: %s %s", response.status_code, endpoint)
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text

        if response.is_error:
            if response.status_code == 401:
                logger.warning("Canvas API 401 Unauthorized - token may be expired")
            logger.error("Canvas API %s %s failed with status %s", method, endpoint, response.status_code)
            raise CanvasAPIError(_error_message(response, body), status_code=response.status_code, body=body)

        links = {rel: link["url"] for rel, link in response.links.items() if link.get("url")}
        return CanvasAPIResponse(
            data=body,
            status=response.status_code,
            headers=dict(response.headers),
            links=links or None,
        )

    # Users
    async def get_current_user(self) -> CanvasAPIResponse:
        return await self._request("GET", "/users/self")

    async def get_user(self, user_id: int) -> CanvasAPIResponse:
        return await self._request("GET", f"/users/{user_id}")

    # Courses
    async def get_courses(self, params: Optional[Dict[str, Any]] = None) -> CanvasAPIResponse:
        return await self._request("GET", "/courses", params=params)

    async def get_course(self, course_id: int, include: Optional[List[str]] = None) -> CanvasAPIResponse:
        return await self._request("GET", f"/courses/{course_id}", params={"include": include})

    async def create_course(self, account_id: int, course: Dict[str, Any]) -> CanvasAPIResponse:
        return await self._request("POST", f"/accounts/{account_id}/courses", json={"course": _compact(course)})

    async def update_course(self, course_id: int, course: Dict[str, Any]) -> CanvasAPIResponse:
        return await self._request("PUT", f"/courses/{course_id}", json={"course": _compact(course)})

    # Assignments
    async def get_assignments(self, course_id: int, params: Optional[Dict[str, Any]] = None) -> CanvasAPIResponse:
        return await self._request("GET", f"/courses/{course_id}/assignments", params=params)

    async def get_assignment(
        self, course_id: int, assignment_id: int, include: Optional[List[str]] = None
    ) -> CanvasAPIResponse:
        return await self._request(
            "GET", f"/courses/{course_id}/assignments/{assignment_id}", params={"include": include}
        )

    async def create_assignment(self, course_id: int, assignment: Dict[str, Any]) -> CanvasAPIResponse:
        return await self._request(
            "POST", f"/courses/{course_id}/assignments", json={"assignment": _compact(assignment)}
        )

    async def update_assignment(
        self, course_id: int, assignment_id: int, assignment: Dict[str, Any]
    ) -> CanvasAPIResponse:
        return await self._request(
            "PUT",
            f"/courses/{course_id}/assignments/{assignment_id}",
            json={"assignment": _compact(assignment)},
        )

    # Submissions
    async def get_submissions(
        self, course_id: int, assignment_id: int, params: Optional[Dict[str, Any]] = None
    ) -> CanvasAPIResponse:
        return await self._request(
            "GET", f"/courses/{course_id}/assignments/{assignment_id}/submissions", params=params
        )

    async def get_submission(
        self, course_id: int, assignment_id: int, user_id: int, include: Optional[List[str]] = None
    ) -> CanvasAPIResponse:
        return await self._request(
            "GET",
            f"/courses/{course_id}/assignments/{assignment_id}/submissions/{user_id}",
            params={"include": include},
        )

    async def grade_submission(
        self, course_id: int, assignment_id: int, user_id: int, grade: Dict[str, Any]
    ) -> CanvasAPIResponse:
        comment = grade.pop("comment", None)
        payload: Dict[str, Any] = {"submission": _compact(grade)}
        if comment:
            payload["comment"] = {"text_comment": comment}
        return await self._request(
            "PUT",
            f"/courses/{course_id}/assignments/{assignment_id}/submissions/{user_id}",
            json=payload,
        )

    # Enrollments
    async def get_enrollments(self, course_id: int, params: Optional[Dict[str, Any]] = None) -> CanvasAPIResponse:
        return await self._request("GET", f"/courses/{course_id}/enrollments", params=params)

    async def enroll_user(self, course_id: int, enrollment: Dict[str, Any]) -> CanvasAPIResponse:
        return await self._request(
            "POST", f"/courses/{course_id}/enrollments", json={"enrollment": _compact(enrollment)}
        )

    # Files
    async def get_files(self, course_id: int, params: Optional[Dict[str, Any]] = None) -> CanvasAPIResponse:
        return await self._request("GET", f"/courses/{course_id}/files", params=params)

    async def get_file(self, file_id: int, include: Optional[List[str]] = None) -> CanvasAPIResponse:
        return await self._request("GET", f"/files/{file_id}", params={"include": include})

    async def validate_token(self) -> bool:
        """True, если Canvas принимает токен (`GET /users/self` успешен)."""
        try:
            await self.get_current_user()
        except Exception as exc:
            logger.error("Token validation failed: %s", exc)
            return False
        return True


__all__ = ["CanvasAPIClient", "CanvasAPIError", "CanvasAPIResponse"]
