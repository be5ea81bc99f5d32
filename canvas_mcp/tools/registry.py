"""Описание схем и реестра MCP-инструментов и промптов Canvas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

ToolResponse = Dict[str, Any]

_ACCESS_TOKEN = {"type": "string", "description": "Canvas access token for authentication"}
_INCLUDE = {"type": "array", "items": {"type": "string"}, "description": "Additional information to include"}
_ISO_DATE = "(ISO 8601 format)"


class ToolSchema(BaseModel):
    """JSON-схема аргументов инструмента MCP."""

    type: str = "object"
    properties: Dict[str, Any] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)
    additionalProperties: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class ToolSpec(BaseModel):
    """Спецификация инструмента MCP, публикуемая в `tools/list`."""

    name: str
    description: str
    input_schema: ToolSchema

    def as_mcp_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.as_dict(),
        }


class PromptArgument(BaseModel):
    name: str
    description: Optional[str] = None
    required: bool = False


class PromptSpec(BaseModel):
    """Спецификация промпта, публикуемая в `prompts/list`."""

    name: str
    description: str
    arguments: List[PromptArgument] = Field(default_factory=list)

    def as_mcp_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def _canvas_tool(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> ToolSpec:
    # Каждый вызов Canvas требует токен, поэтому он входит во все схемы.
    return ToolSpec(
        name=name,
        description=description,
        input_schema=ToolSchema(
            properties={"access_token": _ACCESS_TOKEN, **properties},
            required=["access_token", *required],
        ),
    )


def _id(what: str) -> Dict[str, Any]:
    return {"type": "number", "description": f"The ID of the {what}"}


def _string(description: str, enum: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "string", "description": description}
    if enum:
        schema["enum"] = enum
    return schema


def _boolean(description: str) -> Dict[str, Any]:
    return {"type": "boolean", "description": description}


_COURSE_FIELDS = {
    "name": _string("The name of the course"),
    "course_code": _string("The course code/identifier"),
    "start_at": _string(f"Course start date {_ISO_DATE}"),
    "end_at": _string(f"Course end date {_ISO_DATE}"),
    "is_public": _boolean("Whether the course is public"),
    "public_syllabus": _boolean("Whether the syllabus is public"),
}

_ASSIGNMENT_FIELDS = {
    "name": _string("The name of the assignment"),
    "description": _string("The assignment description/instructions"),
    "points_possible": {"type": "number", "description": "The maximum points for the assignment"},
    "due_at": _string(f"Due date {_ISO_DATE}"),
    "published": _boolean("Whether the assignment is published"),
}


_TOOL_LIST: List[ToolSpec] = [
    _canvas_tool(
        "get_courses",
        "Get a list of courses for the authenticated user",
        {
            "enrollment_type": _string(
                "Filter by enrollment type", ["student", "teacher", "ta", "observer", "designer"]
            ),
            "enrollment_state": _string("Filter by enrollment state", ["active", "invited", "completed"]),
            "include": _INCLUDE,
        },
        [],
    ),
    _canvas_tool(
        "get_course",
        "Get detailed information about a specific course",
        {"course_id": _id("course to retrieve"), "include": _INCLUDE},
        ["course_id"],
    ),
    _canvas_tool(
        "create_course",
        "Create a new course in Canvas",
        {"account_id": _id("account where the course will be created"), **_COURSE_FIELDS},
        ["account_id", "name", "course_code"],
    ),
    _canvas_tool(
        "update_course",
        "Update an existing course",
        {"course_id": _id("course to update"), **_COURSE_FIELDS},
        ["course_id"],
    ),
    _canvas_tool(
        "get_assignments",
        "Get assignments for a course",
        {
            "course_id": _id("course"),
            "include": _INCLUDE,
            "search_term": _string("Search term to filter assignments"),
            "bucket": _string(
                "Filter assignments by bucket",
                ["past", "overdue", "undated", "ungraded", "unsubmitted", "upcoming", "future"],
            ),
        },
        ["course_id"],
    ),
    _canvas_tool(
        "get_assignment",
        "Get detailed information about a specific assignment",
        {"course_id": _id("course"), "assignment_id": _id("assignment"), "include": _INCLUDE},
        ["course_id", "assignment_id"],
    ),
    _canvas_tool(
        "create_assignment",
        "Create a new assignment in a course",
        {
            "course_id": _id("course"),
            **_ASSIGNMENT_FIELDS,
            "unlock_at": _string(f"Date when assignment becomes available {_ISO_DATE}"),
            "lock_at": _string(f"Date when assignment is locked {_ISO_DATE}"),
            "submission_types": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Allowed submission types (online_text_entry, online_url, online_upload, ...)",
            },
            "grading_type": _string(
                "Grading type", ["pass_fail", "percent", "letter_grade", "gpa_scale", "points", "not_graded"]
            ),
        },
        ["course_id", "name"],
    ),
    _canvas_tool(
        "update_assignment",
        "Update an existing assignment",
        {"course_id": _id("course"), "assignment_id": _id("assignment to update"), **_ASSIGNMENT_FIELDS},
        ["course_id", "assignment_id"],
    ),
    _canvas_tool("get_current_user", "Get information about the current authenticated user", {}, []),
    _canvas_tool(
        "get_user",
        "Get information about a specific user",
        {"user_id": _id("user to retrieve")},
        ["user_id"],
    ),
    _canvas_tool(
        "get_enrollments",
        "Get enrollments for a course",
        {
            "course_id": _id("course"),
            "type": {"type": "array", "items": {"type": "string"}, "description": "Filter by enrollment type"},
            "state": {"type": "array", "items": {"type": "string"}, "description": "Filter by enrollment state"},
            "include": _INCLUDE,
        },
        ["course_id"],
    ),
    _canvas_tool(
        "enroll_user",
        "Enroll a user in a course",
        {
            "course_id": _id("course"),
            "user_id": _id("user to enroll"),
            "type": _string(
                "The enrollment type",
                [
                    "StudentEnrollment",
                    "TeacherEnrollment",
                    "TaEnrollment",
                    "ObserverEnrollment",
                    "DesignerEnrollment",
                ],
            ),
            "enrollment_state": _string("The enrollment state", ["active", "invited"]),
            "notify": _boolean("Whether to send a notification to the user"),
        },
        ["course_id", "user_id", "type"],
    ),
    _canvas_tool(
        "get_submissions",
        "Get submissions for an assignment",
        {
            "course_id": _id("course"),
            "assignment_id": _id("assignment"),
            "include": _INCLUDE,
            "workflow_state": _string(
                "Filter by submission workflow state", ["submitted", "unsubmitted", "graded", "pending_review"]
            ),
        },
        ["course_id", "assignment_id"],
    ),
    _canvas_tool(
        "get_submission",
        "Get a specific submission",
        {
            "course_id": _id("course"),
            "assignment_id": _id("assignment"),
            "user_id": _id("user"),
            "include": _INCLUDE,
        },
        ["course_id", "assignment_id", "user_id"],
    ),
    _canvas_tool(
        "grade_submission",
        "Grade a student submission",
        {
            "course_id": _id("course"),
            "assignment_id": _id("assignment"),
            "user_id": _id("user"),
            "posted_grade": _string("The grade to assign (points, percentage, letter grade, etc.)"),
            "excuse": _boolean("Whether to excuse the submission"),
            "comment": _string("Comment to add to the submission"),
        },
        ["course_id", "assignment_id", "user_id"],
    ),
    _canvas_tool(
        "get_files",
        "Get files for a course",
        {
            "course_id": _id("course"),
            "search_term": _string("Search term to filter files"),
            "content_types": {"type": "array", "items": {"type": "string"}, "description": "Filter by content types"},
            "sort": _string("Sort order", ["name", "size", "created_at", "updated_at", "content_type"]),
        },
        ["course_id"],
    ),
    _canvas_tool("get_file", "Get information about a specific file", {"file_id": _id("file")}, ["file_id"]),
]

TOOLS: Dict[str, ToolSpec] = {spec.name: spec for spec in _TOOL_LIST}


PROMPTS: Dict[str, PromptSpec] = {
    "course_overview": PromptSpec(
        name="course_overview",
        description="Generate a comprehensive overview of a Canvas course",
        arguments=[
            PromptArgument(name="course_id", description="The ID of the course to analyze", required=True),
            PromptArgument(name="include_assignments", description="Whether to include assignment information"),
            PromptArgument(name="include_enrollments", description="Whether to include enrollment information"),
        ],
    ),
    "assignment_analysis": PromptSpec(
        name="assignment_analysis",
        description="Analyze assignment performance and provide insights",
        arguments=[
            PromptArgument(name="course_id", description="The ID of the course", required=True),
            PromptArgument(name="assignment_id", description="The ID of the assignment to analyze", required=True),
        ],
    ),
    "student_progress": PromptSpec(
        name="student_progress",
        description="Generate a student progress report",
        arguments=[
            PromptArgument(name="course_id", description="The ID of the course", required=True),
            PromptArgument(name="user_id", description="The ID of the student", required=True),
        ],
    ),
}

__all__ = [
    "PROMPTS",
    "PromptArgument",
    "PromptSpec",
    "TOOLS",
    "ToolResponse",
    "ToolSchema",
    "ToolSpec",
]
