"""
Jira plugin: issue-tracker commands under the ``@jira`` domain.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..base import ClientPlugin, split_flags
from ...core.commands.natural_language import DomainDescriptor, extract_issue_key, extract_quoted
from ...core.commands.types import CommandDefinition


ISSUE_KEY = re.compile(r'^[A-Z][A-Z0-9]+-\d+$')
PROJECT_PATTERNS = [
    re.compile(r'프로젝트\s*[:\s]\s*([A-Za-z][A-Za-z0-9]*)'),
    re.compile(r'([A-Za-z][A-Za-z0-9]*)\s*프로젝트'),
    re.compile(r'project\s*[:\s]\s*([A-Za-z][A-Za-z0-9]*)', re.IGNORECASE),
]
SUMMARY_PATTERN = re.compile(r'(?:제목|summary)\s*[:\s]\s*["\'](.+?)["\']', re.IGNORECASE)
DESCRIPTION_PATTERN = re.compile(r'(?:설명|description)\s*[:\s]\s*["\'](.+?)["\']', re.IGNORECASE)
TYPE_PATTERN = re.compile(r'(?:타입|유형|type)\s*[:\s]\s*([A-Za-z]+)', re.IGNORECASE)
QUERY_PATTERN = re.compile(r'(?:쿼리|query|jql)\s*[:\s]\s*["\'](.+?)["\']', re.IGNORECASE)
LIMIT_PATTERN = re.compile(r'(\d+)\s*(?:개|건|issues?)', re.IGNORECASE)
FIELD_PATTERN = re.compile(r'(?:필드|field)\s*[:\s]\s*([A-Za-z가-힣]+)', re.IGNORECASE)
DEFAULT_SEARCH_LIMIT = 10


class JiraClient(ABC):
    """Issue-tracker transport used by the jira plugin."""

    @abstractmethod
    async def get_issue(self, key: str) -> Dict[str, Any]:
        """Issue fields (summary, status, assignee, description, ...)."""

    @abstractmethod
    async def search_issues(self, jql: str, max_results: int = DEFAULT_SEARCH_LIMIT) -> List[Dict[str, Any]]:
        """Issues matching a JQL query."""

    @abstractmethod
    async def create_issue(self, project: str, summary: str, description: str = "",
                           issue_type: str = "Task") -> Dict[str, Any]:
        """Create an issue; returns at least its key."""

    @abstractmethod
    async def update_issue(self, key: str, field: str, value: str) -> None:
        """Set one field (status changes are transitions)."""

    @abstractmethod
    async def add_comment(self, key: str, body: str) -> None:
        """Append a comment."""


def _key_args(text: str) -> List[str]:
    key = extract_issue_key(text.upper())
    return [key] if key else []


def _first_match(patterns, text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _create_args(text: str) -> List[str]:
    project = _first_match(PROJECT_PATTERNS, text)
    summary = _first_match([SUMMARY_PATTERN], text)
    if summary is None:
        quoted = extract_quoted(text)
        summary = quoted[0] if quoted else None
    if not project or not summary:
        return []

    args = [project.upper(), summary]
    description = _first_match([DESCRIPTION_PATTERN], text)
    if description:
        args.append(description)
    issue_type = _first_match([TYPE_PATTERN], text)
    if issue_type:
        args.append(f"--type={issue_type.capitalize()}")
    return args


def _search_args(text: str) -> List[str]:
    query = _first_match([QUERY_PATTERN], text)
    if query is None:
        quoted = extract_quoted(text)
        query = quoted[0] if quoted else None
    args = [query] if query else []
    limit = LIMIT_PATTERN.search(text)
    if limit:
        args.append(f"--limit={limit.group(1)}")
    return args


def _update_args(text: str) -> List[str]:
    key = _key_args(text)
    field = _first_match([FIELD_PATTERN], text)
    quoted = extract_quoted(text)
    if not key or not field or not quoted:
        return key
    return key + [field, quoted[-1]]


def _comment_args(text: str) -> List[str]:
    key = _key_args(text)
    quoted = extract_quoted(text)
    return key + quoted[:1] if key and quoted else key


JIRA_TRIGGERS = {
    "issue": ["이슈", "작업", "티켓", "이슈 보여줘", "이슈 정보", "이슈 확인", "issue", "ticket"],
    "create": ["생성", "만들어", "새 이슈", "이슈 생성", "새로 만들어", "create", "new issue"],
    "search": ["검색", "찾아", "이슈 검색", "이슈 찾아", "조회", "목록", "search", "find", "list"],
    "update": ["업데이트", "수정", "변경", "이슈 업데이트", "업데이트해", "바꿔", "update", "change"],
    "comment": ["코멘트", "댓글", "의견", "코멘트 달아", "댓글 달아", "comment"],
}

JIRA_GUIDANCE = """Issue keys look like PROJ-123 and are always the first argument of issue, update and comment.
create takes [PROJECT, "summary", "description"?, "--type=Bug|Task|Story"?].
search takes a JQL or text query and an optional "--limit=N"."""


class JiraPlugin(ClientPlugin):
    """Issue-tracker commands."""

    id = "jira"
    name = "Jira"
    domain = "jira"
    description = "Look up, create and update Jira issues"
    client_name = "client"

    def get_commands(self) -> List[CommandDefinition]:
        return [
            self.define("issue", "Show an issue", self.issue,
                        syntax="@jira:issue <key>", examples=["@jira:issue APE-42"]),
            self.define("search", "Search issues by JQL or text", self.search,
                        syntax="@jira:search [query] [--limit=<n>]",
                        examples=['@jira:search "assignee = currentUser()"']),
            self.define("create", "Create an issue", self.create,
                        syntax='@jira:create <project> "<summary>" ["<description>"] [--type=<type>]',
                        examples=['@jira:create APE "Login fails on Safari" --type=Bug'], destructive=True),
            self.define("update", "Update a field of an issue", self.update,
                        syntax='@jira:update <key> <field> "<value>"',
                        examples=['@jira:update APE-42 status "In Progress"'], destructive=True),
            self.define("comment", "Comment on an issue", self.comment,
                        syntax='@jira:comment <key> "<text>"',
                        examples=['@jira:comment APE-42 "Fixed in 1.2.0"'], destructive=True),
        ]

    def get_descriptor(self) -> DomainDescriptor:
        return DomainDescriptor(
            domain=self.domain,
            triggers=JIRA_TRIGGERS,
            extractors={
                "issue": _key_args,
                "create": _create_args,
                "search": _search_args,
                "update": _update_args,
                "comment": _comment_args,
            },
            default_action="search",
            guidance=JIRA_GUIDANCE,
            quote_aware={"create", "search", "update", "comment"},
        )

    async def issue(self, args: List[str]) -> Dict[str, Any]:
        key = self._require_key(args, "@jira:issue <key>")
        fields = await self.require_client().get_issue(key)
        lines = [f"# {key}: {fields.get('summary', '')}".rstrip(": "), ""]
        for name in ("status", "assignee", "priority", "type"):
            if fields.get(name):
                lines.append(f"- **{name}**: {fields[name]}")
        if fields.get("description"):
            lines.extend(["", str(fields["description"])])
        return {"content": "\n".join(lines), "data": fields}

    async def search(self, args: List[str]) -> Dict[str, Any]:
        positionals, flags = split_flags(args)
        try:
            limit = int(flags.get("limit", DEFAULT_SEARCH_LIMIT))
        except ValueError:
            raise ValueError(f"--limit must be a number, got '{flags['limit']}'")

        query = " ".join(positionals).strip()
        jql = self._to_jql(query)
        issues = await self.require_client().search_issues(jql, limit)

        if not issues:
            return {"content": f"No issues match `{jql}`.", "data": {"jql": jql, "issues": []}}
        lines = [f"# {len(issues)} issue(s)", ""]
        lines.extend(
            f"- **{issue.get('key')}** {issue.get('summary', '')} ({issue.get('status', 'unknown')})"
            for issue in issues
        )
        return {"content": "\n".join(lines), "data": {"jql": jql, "issues": issues}}

    async def create(self, args: List[str]) -> Dict[str, Any]:
        positionals, flags = split_flags(args)
        if len(positionals) < 2:
            raise ValueError('Usage: @jira:create <project> "<summary>" ["<description>"] [--type=<type>]')
        project, summary = positionals[0].upper(), positionals[1]
        description = positionals[2] if len(positionals) > 2 else ""
        created = await self.require_client().create_issue(
            project, summary, description, flags.get("type", "Task")
        )
        return {"content": f"Created **{created.get('key')}**: {summary}", "data": created}

    async def update(self, args: List[str]) -> str:
        key = self._require_key(args, '@jira:update <key> <field> "<value>"')
        if len(args) < 3:
            raise ValueError('Usage: @jira:update <key> <field> "<value>"')
        field, value = args[1], " ".join(args[2:])
        await self.require_client().update_issue(key, field, value)
        return f"Updated {key}: {field} = {value}"

    async def comment(self, args: List[str]) -> str:
        key = self._require_key(args, '@jira:comment <key> "<text>"')
        body = " ".join(args[1:]).strip()
        if not body:
            raise ValueError('Usage: @jira:comment <key> "<text>"')
        await self.require_client().add_comment(key, body)
        return f"Commented on {key}."

    @staticmethod
    def _require_key(args: List[str], usage: str) -> str:
        if not args or not ISSUE_KEY.match(args[0].upper()):
            raise ValueError(f"Usage: {usage}")
        return args[0].upper()

    @staticmethod
    def _to_jql(query: str) -> str:
        if not query:
            return "assignee = currentUser() AND resolution = Unresolved ORDER BY updated DESC"
        if any(op in query for op in ("=", "~", " ORDER BY", " AND ", " OR ")):
            return query
        escaped = query.replace('"', '\\"')
        return f'text ~ "{escaped}" ORDER BY updated DESC'
