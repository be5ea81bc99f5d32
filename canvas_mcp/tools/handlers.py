"""Обработчики MCP-инструментов Canvas и каталог, через который их вызывает диспетчер."""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from canvas_mcp.services.canvas_client import CanvasAPIClient, CanvasAPIResponse
from canvas_mcp.tools.registry import PROMPTS, TOOLS, PromptSpec, ToolResponse, ToolSpec

logger = logging.getLogger("canvas_mcp.tools.handlers")

ToolHandler = Callable[[Dict[str, Any], CanvasAPIClient], Awaitable[CanvasAPIResponse]]
PromptMessage = Dict[str, Any]


class ToolNotFoundError(LookupError):
    pass


class PromptNotFoundError(LookupError):
    pass


def _tool_ok(*, content: Optional[List[Dict[str, Any]]] = None) -> ToolResponse:
    return {"content": content or [], "isError": False}


def _tool_error(message: str) -> ToolResponse:
    return {"content": [{"type": "text", "text": message}], "isError": True}


def _pick(arguments: Mapping[str, Any], *names: str) -> Dict[str, Any]:
    return {name: arguments.get(name) for name in names}


async def _handle_get_courses(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_courses(_pick(arguments, "enrollment_type", "enrollment_state", "include"))


async def _handle_get_course(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_course(arguments["course_id"], arguments.get("include"))


async def _handle_create_course(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    course = _pick(arguments, "name", "course_code", "start_at", "end_at", "is_public", "public_syllabus")
    return await client.create_course(arguments["account_id"], course)


async def _handle_update_course(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    course = _pick(arguments, "name", "course_code", "start_at", "end_at", "is_public", "public_syllabus")
    return await client.update_course(arguments["course_id"], course)


async def _handle_get_assignments(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_assignments(arguments["course_id"], _pick(arguments, "include", "search_term", "bucket"))


async def _handle_get_assignment(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_assignment(arguments["course_id"], arguments["assignment_id"], arguments.get("include"))


async def _handle_create_assignment(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    assignment = _pick(
        arguments,
        "name",
        "description",
        "points_possible",
        "due_at",
        "unlock_at",
        "lock_at",
        "submission_types",
        "grading_type",
        "published",
    )
    return await client.create_assignment(arguments["course_id"], assignment)


async def _handle_update_assignment(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    assignment = _pick(arguments, "name", "description", "points_possible", "due_at", "published")
    return await client.update_assignment(arguments["course_id"], arguments["assignment_id"], assignment)


async def _handle_get_current_user(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_current_user()


async def _handle_get_user(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_user(arguments["user_id"])


async def _handle_get_enrollments(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_enrollments(arguments["course_id"], _pick(arguments, "type", "state", "include"))


async def _handle_enroll_user(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    enrollment = _pick(arguments, "user_id", "type", "enrollment_state", "notify")
    return await client.enroll_user(arguments["course_id"], enrollment)


async def _handle_get_submissions(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_submissions(
        arguments["course_id"], arguments["assignment_id"], _pick(arguments, "include", "workflow_state")
    )


async def _handle_get_submission(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_submission(
        arguments["course_id"], arguments["assignment_id"], arguments["user_id"], arguments.get("include")
    )


async def _handle_grade_submission(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    grade = _pick(arguments, "posted_grade", "excuse", "comment")
    return await client.grade_submission(
        arguments["course_id"], arguments["assignment_id"], arguments["user_id"], grade
    )


async def _handle_get_files(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_files(arguments["course_id"], _pick(arguments, "search_term", "content_types", "sort"))


async def _handle_get_file(arguments: Dict[str, Any], client: CanvasAPIClient) -> CanvasAPIResponse:
    return await client.get_file(arguments["file_id"])


TOOL_HANDLERS: Dict[str, ToolHandler] = {
    "get_courses": _handle_get_courses,
    "get_course": _handle_get_course,
    "create_course": _handle_create_course,
    "update_course": _handle_update_course,
    "get_assignments": _handle_get_assignments,
    "get_assignment": _handle_get_assignment,
    "create_assignment": _handle_create_assignment,
    "update_assignment": _handle_update_assignment,
    "get_current_user": _handle_get_current_user,
    "get_user": _handle_get_user,
    "get_enrollments": _handle_get_enrollments,
    "enroll_user": _handle_enroll_user,
    "get_submissions": _handle_get_submissions,
    "get_submission": _handle_get_submission,
    "grade_submission": _handle_grade_submission,
    "get_files": _handle_get_files,
    "get_file": _handle_get_file,
}


def _text(role: str, text: str) -> PromptMessage:
    return {"role": role, "content": [{"type": "text", "text": text}]}


def _render_course_overview(arguments: Mapping[str, Any]) -> List[PromptMessage]:
    extras = []
    if arguments.get("include_assignments"):
        extras.append("Include assignment information.")
    if arguments.get("include_enrollments"):
        extras.append("Include enrollment statistics.")
    request = " ".join([f"Please provide a comprehensive overview of course ID {arguments['course_id']}.", *extras])
    return [
        _text(
            "system",
            "You are a Canvas LMS assistant. Generate a comprehensive course overview based on the provided course data.",
        ),
        _text("user", request),
    ]


def _render_assignment_analysis(arguments: Mapping[str, Any]) -> List[PromptMessage]:
    return [
        _text(
            "system",
            "You are a Canvas LMS assistant. Analyze assignment performance and provide educational insights.",
        ),
        _text(
            "user",
            f"Please analyze the performance of assignment ID {arguments['assignment_id']} in course ID "
            f"{arguments['course_id']}. Provide insights on student performance, grade distribution, "
            "and suggestions for improvement.",
        ),
    ]


def _render_student_progress(arguments: Mapping[str, Any]) -> List[PromptMessage]:
    return [
        _text(
            "system",
            "You are a Canvas LMS assistant. Generate student progress reports with actionable insights.",
        ),
        _text(
            "user",
            f"Please generate a progress report for student ID {arguments['user_id']} in course ID "
            f"{arguments['course_id']}. Include assignment completion, grade trends, and recommendations.",
        ),
    ]


PROMPT_RENDERERS: Dict[str, Callable[[Mapping[str, Any]], List[PromptMessage]]] = {
    "course_overview": _render_course_overview,
    "assignment_analysis": _render_assignment_analysis,
    "student_progress": _render_student_progress,
}


def _missing_arguments(arguments: Mapping[str, Any], required: List[str]) -> List[str]:
    return [name for name in required if arguments.get(name) in (None, "")]


class ToolCatalog:
    """Каталог операций: список инструментов/промптов и их выполнение.

    Ошибки выполнения инструмента не перехватываются: диспетчер сам
    превращает их в результат с `isError`.
    """

    def __init__(
        self,
        *,
        tools: Optional[Dict[str, ToolSpec]] = None,
        handlers: Optional[Dict[str, ToolHandler]] = None,
        prompts: Optional[Dict[str, PromptSpec]] = None,
    ) -> None:
        self._tools = TOOLS if tools is None else tools
        self._handlers = TOOL_HANDLERS if handlers is None else handlers
        self._prompts = PROMPTS if prompts is None else prompts
        for name in self._tools:
            logger.debug("Registered tool: %s", name)

    async def list_tools(self) -> List[Dict[str, Any]]:
        return [spec.as_mcp_dict() for spec in self._tools.values()]

    async def invoke(self, name: str, arguments: Dict[str, Any], client: CanvasAPIClient) -> ToolResponse:
        spec = self._tools.get(name)
        handler = self._handlers.get(name)
        if spec is None or handler is None:
            raise ToolNotFoundError(f"Tool not found: {name}")
        missing = _missing_arguments(arguments, spec.input_schema.required)
        if missing:
            raise ValueError(f"Missing required arguments: {', '.join(missing)}")

        result = await handler(arguments, client)
        text = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
        return _tool_ok(content=[{"type": "text", "text": text}])

    async def list_prompts(self) -> List[Dict[str, Any]]:
        return [spec.as_mcp_dict() for spec in self._prompts.values()]

    async def get_prompt(self, name: str, arguments: Mapping[str, Any]) -> List[PromptMessage]:
        spec = self._prompts.get(name)
        renderer = PROMPT_RENDERERS.get(name)
        if spec is None or renderer is None:
            raise PromptNotFoundError(f"Prompt not found: {name}")
        missing = _missing_arguments(arguments, [arg.name for arg in spec.arguments if arg.required])
        if missing:
            raise ValueError(f"Missing required prompt arguments: {', '.join(missing)}")
        return renderer(arguments)


__all__ = [
    "PromptNotFoundError",
    "TOOL_HANDLERS",
    "ToolCatalog",
    "ToolHandler",
    "ToolNotFoundError",
    "_tool_error",
    "_tool_ok",
]
