"""
SWDP plugin: build-portal commands under the ``@swdp`` domain.
"""

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from ..base import ClientPlugin, split_flags
from ...core.commands.natural_language import DomainDescriptor
from ...core.commands.types import CommandDefinition


class BuildType(str, Enum):
    LOCAL = "local"
    LAYER = "layer"
    INTEGRATION = "integration"
    ALL = "all"


BUILD_TYPE_WORDS = {
    BuildType.ALL: ("전체", "all", "full"),
    BuildType.INTEGRATION: ("통합", "integration"),
    BuildType.LAYER: ("레이어", "layer"),
    BuildType.LOCAL: ("로컬", "local"),
}
WATCH_WORDS = ("워치", "지켜", "watch")
PR_PATTERN = re.compile(r'(?<![A-Za-z])pr(?![A-Za-z])|풀 ?리퀘스트|pull request', re.IGNORECASE)
PROJECT_CODE_PATTERN = re.compile(r'\b([A-Z]{2,}[0-9]+)\b')
TASK_ID_PATTERN = re.compile(r'\b(TASK[-_]?[0-9]+|[A-Z]+-[0-9]+)\b', re.IGNORECASE)
BUILD_ID_PATTERN = re.compile(r'\b([0-9]{3,})\b')


class SwdpClient(ABC):
    """Transport to the SWDP portal."""

    @abstractmethod
    async def get_projects(self) -> List[Dict[str, Any]]:
        """Projects visible to the current user."""

    @abstractmethod
    async def get_project(self, code: str) -> Dict[str, Any]:
        """Details of one project."""

    @abstractmethod
    async def get_tasks(self, project: Optional[str] = None) -> List[Dict[str, Any]]:
        """Tasks, optionally restricted to one project."""

    @abstractmethod
    async def get_task(self, task_id: str) -> Dict[str, Any]:
        """Details of one task."""

    @abstractmethod
    async def start_build(self, build_type: str, watch: bool = False, create_pr: bool = False,
                          params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Start a build; the result carries ``buildId``."""

    @abstractmethod
    async def get_build_status(self, build_id: Optional[str] = None) -> Dict[str, Any]:
        """Status of a build, or of the most recent one."""

    @abstractmethod
    async def get_documents(self, project: Optional[str] = None) -> List[Dict[str, Any]]:
        """Documents, optionally restricted to one project."""


def _build_args(text: str) -> List[str]:
    lowered = text.lower()
    args: List[str] = []
    for build_type, words in BUILD_TYPE_WORDS.items():
        if any(word in lowered for word in words):
            args.append(build_type.value)
            break
    if any(word in lowered for word in WATCH_WORDS):
        args.append("--watch")
    if PR_PATTERN.search(text):
        args.append("--pr")
    return args


def _project_args(text: str) -> List[str]:
    match = PROJECT_CODE_PATTERN.search(text)
    return [match.group(1)] if match else []


def _task_args(text: str) -> List[str]:
    match = TASK_ID_PATTERN.search(text)
    return [match.group(1).upper()] if match else []


def _build_status_args(text: str) -> List[str]:
    match = BUILD_ID_PATTERN.search(text)
    return [match.group(1)] if match else []


SWDP_TRIGGERS = {
    "projects": ["프로젝트 목록", "프로젝트 리스트", "프로젝트들", "projects", "project list"],
    "project": ["프로젝트 정보", "프로젝트 상세", "project info", "project"],
    "tasks": ["작업 목록", "태스크 목록", "할 일", "tasks", "task list"],
    "task": ["작업 정보", "태스크 정보", "작업 상세", "task"],
    "build": ["빌드", "빌드 시작", "빌드해", "빌드 실행", "build", "start build"],
    "build-status": ["빌드 상태", "빌드 결과", "빌드 어떻게", "build status"],
    "documents": ["문서 목록", "문서", "도큐먼트", "documents", "docs"],
}

SWDP_GUIDANCE = """build takes an optional type (local, layer, integration, all) followed by "--watch" and/or "--pr".
build-status takes an optional numeric build id. project codes look like PRJ001."""


class SwdpPlugin(ClientPlugin):
    """Build-portal commands."""

    id = "swdp"
    name = "SWDP"
    domain = "swdp"
    description = "Projects, tasks, builds and documents on the SWDP portal"
    client_name = "portal client"

    def get_commands(self) -> List[CommandDefinition]:
        return [
            self.define("projects", "List projects", self.projects, examples=["@swdp:projects"]),
            self.define("project", "Show a project", self.project,
                        syntax="@swdp:project <project_code>", examples=["@swdp:project PRJ001"]),
            self.define("tasks", "List tasks", self.tasks,
                        syntax="@swdp:tasks [project_code]", examples=["@swdp:tasks", "@swdp:tasks PRJ001"]),
            self.define("task", "Show a task", self.task,
                        syntax="@swdp:task <task_id>", examples=["@swdp:task TASK001"]),
            self.define("build", "Start a build", self.build,
                        syntax="@swdp:build [type] [--watch] [--pr]",
                        examples=["@swdp:build local", "@swdp:build layer --watch", "@swdp:build all --pr"],
                        destructive=True),
            self.define("build-status", "Show build status", self.build_status,
                        syntax="@swdp:build:status [buildId]",
                        examples=["@swdp:build:status", "@swdp:build:status 12345"],
                        name="build:status"),
            self.define("documents", "List documents", self.documents,
                        syntax="@swdp:documents [project_code]", examples=["@swdp:documents"]),
        ]

    def get_descriptor(self) -> DomainDescriptor:
        return DomainDescriptor(
            domain=self.domain,
            triggers=SWDP_TRIGGERS,
            extractors={
                "project": _project_args,
                "tasks": _project_args,
                "documents": _project_args,
                "task": _task_args,
                "build": _build_args,
                "build-status": _build_status_args,
            },
            default_action="projects",
            guidance=SWDP_GUIDANCE,
        )

    async def projects(self, args: List[str]) -> Dict[str, Any]:
        projects = await self.require_client().get_projects()
        if not projects:
            return {"content": "No projects.", "data": {"projects": []}}
        lines = ["# Projects", ""]
        lines.extend(f"- **{p.get('code')}** {p.get('name', '')}".rstrip() for p in projects)
        return {"content": "\n".join(lines), "data": {"projects": projects}}

    async def project(self, args: List[str]) -> Dict[str, Any]:
        if not args:
            raise ValueError("Usage: @swdp:project <project_code>")
        details = await self.require_client().get_project(args[0])
        lines = [f"# {details.get('name', args[0])} ({args[0]})", ""]
        lines.extend(f"- **{key}**: {value}" for key, value in details.items() if key not in ("name", "code"))
        return {"content": "\n".join(lines), "data": details}

    async def tasks(self, args: List[str]) -> Dict[str, Any]:
        project = args[0] if args else None
        tasks = await self.require_client().get_tasks(project)
        scope = f" in {project}" if project else ""
        if not tasks:
            return {"content": f"No tasks{scope}.", "data": {"tasks": []}}
        lines = [f"# Tasks{scope}", ""]
        lines.extend(
            f"- **{t.get('id')}** {t.get('title', '')} ({t.get('status', 'unknown')})" for t in tasks
        )
        return {"content": "\n".join(lines), "data": {"tasks": tasks}}

    async def task(self, args: List[str]) -> Dict[str, Any]:
        if not args:
            raise ValueError("Usage: @swdp:task <task_id>")
        details = await self.require_client().get_task(args[0])
        lines = [f"# {args[0]}: {details.get('title', '')}".rstrip(": "), ""]
        for key in ("status", "assignee", "project"):
            if details.get(key):
                lines.append(f"- **{key}**: {details[key]}")
        if details.get("description"):
            lines.extend(["", str(details["description"])])
        return {"content": "\n".join(lines), "data": details}

    async def build(self, args: List[str]) -> Dict[str, Any]:
        positionals, flags = split_flags(args)
        build_type = BuildType.LOCAL
        if positionals:
            try:
                build_type = BuildType(positionals[0].lower())
            except ValueError:
                valid = ", ".join(t.value for t in BuildType)
                raise ValueError(f"Unknown build type '{positionals[0]}' (expected one of: {valid})")

        watch = flags.pop("watch", None) is not None
        create_pr = flags.pop("pr", None) is not None
        result = await self.require_client().start_build(build_type.value, watch, create_pr, flags)
        return {"content": f"Build started ({build_type.value}). Build ID: {result.get('buildId')}", "data": result}

    async def build_status(self, args: List[str]) -> Dict[str, Any]:
        status = await self.require_client().get_build_status(args[0] if args else None)
        build_id = status.get("buildId", args[0] if args else "latest")
        return {"content": f"Build {build_id}: {status.get('status', 'unknown')}", "data": status}

    async def documents(self, args: List[str]) -> Dict[str, Any]:
        project = args[0] if args else None
        documents = await self.require_client().get_documents(project)
        if not documents:
            return {"content": "No documents.", "data": {"documents": []}}
        lines = ["# Documents", ""]
        lines.extend(f"- **{d.get('id')}** {d.get('title', '')}".rstrip() for d in documents)
        return {"content": "\n".join(lines), "data": {"documents": documents}}
