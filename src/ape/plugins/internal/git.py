"""
Git plugin: version-control commands under the ``@git`` domain.
"""

import re
from abc import ABC, abstractmethod
from typing import List, Optional

from ..base import ClientPlugin, split_flags
from ...core.commands.natural_language import DomainDescriptor, extract_file_paths, extract_quoted
from ...core.commands.types import CommandDefinition
from ...core.providers.base import ModelCapability
from ...utils.error_handling import PluginUnavailableError


ALL_WORDS = ("모든", "전체", "다 ", "all", "everything")
MESSAGE_PATTERN = re.compile(r'(?:메시지|message)\s*[:\s]\s*(.+)$', re.IGNORECASE)
BRANCH_PATTERNS = [
    re.compile(r'브랜치[는:]?\s+([\w/.\-]+)'),
    re.compile(r'([\w/.\-]+)\s*브랜치'),
    re.compile(r'(?:branch|checkout|switch to)\s+([\w/.\-]+)', re.IGNORECASE),
]
COUNT_PATTERN = re.compile(r'(\d+)\s*(?:개|commits?|entries)', re.IGNORECASE)
NOT_A_BRANCH = {"목록", "정보", "변경", "이동", "list", "info", "to", "the", "새"}
MAX_DIFF_CHARS = 12000


class GitClient(ABC):
    """Runs git in the workspace repository."""

    @abstractmethod
    async def run(self, args: List[str]) -> str:
        """Run ``git <args>`` and return stdout; raise on a non-zero exit."""


def _mentions_all(text: str) -> bool:
    lowered = f"{text.lower()} "
    return any(word in lowered for word in ALL_WORDS)


def _add_args(text: str) -> List[str]:
    paths = extract_file_paths(text)
    if paths:
        return paths
    return ["."] if _mentions_all(text) else []


def _commit_args(text: str) -> List[str]:
    quoted = extract_quoted(text)
    message = quoted[0] if quoted else None
    if message is None:
        match = MESSAGE_PATTERN.search(text)
        if match:
            message = match.group(1).strip()

    args = ["-m", message] if message else []
    if _mentions_all(text):
        args.append("--all")
    return args


def _branch_args(text: str) -> List[str]:
    for pattern in BRANCH_PATTERNS:
        for match in pattern.finditer(text):
            name = match.group(1)
            if name.lower() not in NOT_A_BRANCH:
                return [name]
    return []


def _log_args(text: str) -> List[str]:
    match = COUNT_PATTERN.search(text)
    return [f"--count={match.group(1)}"] if match else []


GIT_TRIGGERS = {
    "status": ["상태", "상황", "뭐 바뀌었어", "변경사항", "변경 내역", "현재 상태", "status"],
    "diff": ["차이", "변경 내용", "뭐가 바뀌었어", "코드 변경", "변경점", "diff"],
    "changes": ["변경된 파일", "어떤 파일", "파일 목록", "수정된 파일", "changed files"],
    "add": ["스테이징", "추가해", "스테이지", "추가", "담기", "stage", "add"],
    "commit": ["커밋", "변경사항 저장", "변경 기록", "체크포인트", "commit"],
    "auto-commit": ["자동 커밋", "알아서 커밋", "커밋 메시지 생성", "커밋 메시지 만들어", "커밋 문구", "auto commit"],
    "push": ["푸시", "업로드", "서버에 올려", "원격 저장소에 올려", "깃허브에 올려", "push"],
    "pull": ["풀", "당겨", "다운로드", "가져와", "업데이트", "pull"],
    "branch": ["브랜치", "가지", "분기", "브랜치 목록", "브랜치 정보", "branch", "branches"],
    "checkout": ["체크아웃", "브랜치 변경", "브랜치 이동", "전환", "checkout", "switch"],
    "log": ["로그", "히스토리", "기록", "커밋 내역", "이력", "log", "history"],
}

GIT_GUIDANCE = """commit takes ["-m", "<message>"] and optionally "--all".
log takes "--count=N". add takes file paths, or "." for everything.
Prefer status when the request is only a question about the working tree."""


class GitPlugin(ClientPlugin):
    """Version-control commands."""

    id = "git"
    name = "Git"
    domain = "git"
    description = "Inspect and update the workspace git repository"
    client_name = "client"

    def __init__(self, client: Optional[GitClient] = None, model: Optional[ModelCapability] = None):
        super().__init__(client)
        self.model = model

    def get_commands(self) -> List[CommandDefinition]:
        return [
            self.define("status", "Show working tree status", self.status,
                        examples=["@git:status"]),
            self.define("diff", "Show unstaged changes", self.diff,
                        syntax="@git:diff [path]", examples=["@git:diff", "@git:diff src/app.py"]),
            self.define("changes", "List changed files", self.changes,
                        examples=["@git:changes"]),
            self.define("add", "Stage files", self.add,
                        syntax="@git:add [path...]", examples=["@git:add .", "@git:add src/app.py"]),
            self.define("commit", "Record staged changes", self.commit,
                        syntax='@git:commit -m "<message>" [--all]',
                        examples=['@git:commit -m "Fix login redirect"'], destructive=True),
            self.define("auto-commit", "Commit with a generated message", self.auto_commit,
                        syntax="@git:auto-commit [--all]", examples=["@git:auto-commit"], destructive=True),
            self.define("push", "Push commits to the remote", self.push,
                        syntax="@git:push [remote] [branch]", examples=["@git:push origin main"],
                        destructive=True),
            self.define("pull", "Pull from the remote", self.pull,
                        syntax="@git:pull [remote] [branch]", examples=["@git:pull"]),
            self.define("branch", "List branches or create one", self.branch,
                        syntax="@git:branch [name]", examples=["@git:branch", "@git:branch feature/login"]),
            self.define("checkout", "Switch branches", self.checkout,
                        syntax="@git:checkout <branch>", examples=["@git:checkout main"], destructive=True),
            self.define("log", "Show recent commits", self.log,
                        syntax="@git:log [--count=<n>]", examples=["@git:log --count=5"]),
        ]

    def get_descriptor(self) -> DomainDescriptor:
        return DomainDescriptor(
            domain=self.domain,
            triggers=GIT_TRIGGERS,
            extractors={
                "add": _add_args,
                "commit": _commit_args,
                "branch": _branch_args,
                "checkout": _branch_args,
                "log": _log_args,
            },
            default_action="status",
            guidance=GIT_GUIDANCE,
            quote_aware={"commit"},
        )

    async def _git(self, *args: str) -> str:
        return (await self.require_client().run(list(args))).rstrip()

    @staticmethod
    def _block(output: str, empty: str) -> str:
        return f"```\n{output}\n```" if output else empty

    async def status(self, args: List[str]) -> str:
        return self._block(await self._git("status", "--short", "--branch"), "Working tree clean.")

    async def diff(self, args: List[str]) -> str:
        output = await self._git("diff", *args)
        return f"```diff\n{output}\n```" if output else "No unstaged changes."

    async def changes(self, args: List[str]) -> dict:
        output = await self._git("status", "--porcelain")
        files = [line[3:] for line in output.splitlines() if len(line) > 3]
        if not files:
            return {"content": "No changed files.", "data": {"files": []}}
        content = "\n".join(["# Changed files", ""] + [f"- `{name}`" for name in files])
        return {"content": content, "data": {"files": files}}

    async def add(self, args: List[str]) -> str:
        paths = args or ["."]
        await self._git("add", *paths)
        return f"Staged {', '.join(f'`{path}`' for path in paths)}."

    async def commit(self, args: List[str]) -> str:
        message, commit_all = self._parse_commit_args(args)
        if not message:
            raise ValueError('Usage: @git:commit -m "<message>" [--all]')
        git_args = ["commit", "-m", message] + (["--all"] if commit_all else [])
        return self._block(await self._git(*git_args), "Committed.")

    async def auto_commit(self, args: List[str]) -> str:
        if self.model is None:
            raise PluginUnavailableError("auto-commit requires a language model", details={"plugin": self.id})

        _, commit_all = self._parse_commit_args(args)
        diff = await self._git("diff", "HEAD") if commit_all else await self._git("diff", "--cached")
        if not diff:
            return "Nothing to commit."

        prompt = (
            "Write a one-line git commit message (imperative mood, at most 72 characters) "
            "for this diff. Reply with the message only.\n\n" + diff[:MAX_DIFF_CHARS]
        )
        lines = (await self.model.query(prompt)).strip().splitlines()
        message = lines[0].strip().strip('"') if lines else ""
        if not message:
            raise ValueError("The language model returned an empty commit message")
        await self.commit(["-m", message] + (["--all"] if commit_all else []))
        return f"Committed: {message}"

    async def push(self, args: List[str]) -> str:
        return self._block(await self._git("push", *args), "Pushed.")

    async def pull(self, args: List[str]) -> str:
        return self._block(await self._git("pull", *args), "Already up to date.")

    async def branch(self, args: List[str]) -> str:
        if args:
            await self._git("branch", args[0])
            return f"Created branch `{args[0]}`."
        return self._block(await self._git("branch", "--list"), "No branches.")

    async def checkout(self, args: List[str]) -> str:
        if not args:
            raise ValueError("Usage: @git:checkout <branch>")
        await self._git("checkout", args[0])
        return f"Switched to `{args[0]}`."

    async def log(self, args: List[str]) -> str:
        _, flags = split_flags(args)
        count = flags.get("count", "10")
        if not count.isdigit():
            raise ValueError(f"--count must be a number, got '{count}'")
        return self._block(await self._git("log", f"-{count}", "--oneline"), "No commits yet.")

    @staticmethod
    def _parse_commit_args(args: List[str]):
        message: Optional[str] = None
        commit_all = False
        remaining = list(args)
        while remaining:
            arg = remaining.pop(0)
            if arg in ("-m", "--message") and remaining:
                message = remaining.pop(0)
            elif arg in ("-a", "--all"):
                commit_all = True
            elif message is None and not arg.startswith("-"):
                message = arg
        return message, commit_all
