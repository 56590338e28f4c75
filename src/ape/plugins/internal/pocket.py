"""
Pocket plugin: object-storage browsing under the ``@pocket`` domain.

The storage transport is supplied as a ``PocketClient``; this module only
turns its results into readable command output and declares how free text
maps onto pocket commands.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..base import ClientPlugin, split_flags
from ...core.commands.natural_language import (
    DomainDescriptor,
    extract_file_paths,
    extract_keyword_target,
    extract_quoted,
)
from ...core.commands.types import CommandDefinition
from ...core.providers.base import ModelCapability
from ...utils.error_handling import PluginUnavailableError


MAX_LOAD_CHARS = 20000
MAX_GREP_FILES = 50
MAX_GREP_MATCHES = 100
DEFAULT_TREE_DEPTH = 3
TEXT_EXTENSIONS = {
    ".txt", ".md", ".json", ".yaml", ".yml", ".csv", ".log", ".xml", ".html",
    ".py", ".js", ".ts", ".java", ".c", ".cpp", ".h", ".go", ".rs", ".sh", ".sql",
}

FOLDER_PATTERN = re.compile(r'([\w\-./]+?)\s*(?:의\s*)?(?:폴더|디렉토리|folder|directory)', re.IGNORECASE)
IN_PATH_PATTERN = re.compile(r'\b(?:in|under|of)\s+([\w\-./]+)', re.IGNORECASE)
LOCATION_PATTERN = re.compile(r'([\w\-./]+)\s*(?:경로|디렉토리|폴더)?에서')
DEPTH_PATTERNS = [
    re.compile(r'깊이\s*[:\s]?\s*(\d+)'),
    re.compile(r'(\d+)\s*(?:단계|레벨|levels?)', re.IGNORECASE),
    re.compile(r'depth\s*[:=]?\s*(\d+)', re.IGNORECASE),
]
SEARCH_KEYWORDS = ["파일 찾기", "이름 검색", "검색", "찾기", "찾아", "search", "find"]
GREP_KEYWORDS = ["내용 검색", "텍스트 검색", "문자열 검색", "코드 검색", "패턴 검색", "검색", "grep"]

# Generic words that the folder pattern must not mistake for a folder name
NOT_A_FOLDER = {"파일", "전체", "모든", "현재", "the", "this", "a"}


@dataclass
class StorageObject:
    key: str
    size: int = 0
    last_modified: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.key.endswith("/")


class PocketClient(ABC):
    """Object-storage transport used by the pocket plugin."""

    @abstractmethod
    async def list_objects(self, prefix: str = "") -> List[StorageObject]:
        """One level below ``prefix``; directories end with '/'."""

    @abstractmethod
    async def list_all_objects(self, prefix: str = "") -> List[StorageObject]:
        """Every object below ``prefix``, recursively."""

    @abstractmethod
    async def get_object_info(self, key: str) -> Dict[str, Any]:
        """Metadata of one object."""

    @abstractmethod
    async def get_object(self, key: str) -> bytes:
        """Raw object content."""

    @abstractmethod
    async def get_bucket_info(self) -> Dict[str, Any]:
        """Bucket name, region and policy summary."""


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def as_directory(path: str) -> str:
    path = path.strip()
    if not path or path == "/":
        return ""
    return path if path.endswith("/") else f"{path}/"


def extract_folder(text: str) -> Optional[str]:
    for match in FOLDER_PATTERN.finditer(text):
        name = match.group(1).strip("./")
        if name and name.lower() not in NOT_A_FOLDER:
            return as_directory(name)
    match = IN_PATH_PATTERN.search(text)
    if match:
        return as_directory(match.group(1))
    return None


def extract_depth(text: str) -> Optional[str]:
    for pattern in DEPTH_PATTERNS:
        match = pattern.search(text)
        if match:
            return f"--depth={match.group(1)}"
    return None


def _ls_args(text: str) -> List[str]:
    folder = extract_folder(text)
    return [folder] if folder else []


def _path_args(text: str) -> List[str]:
    paths = extract_file_paths(text)
    if paths:
        return paths[:1]
    return _ls_args(text)


def _tree_args(text: str) -> List[str]:
    args = _ls_args(text)
    depth = extract_depth(text)
    if depth:
        args.append(depth)
    return args


def _search_args(text: str) -> List[str]:
    keyword = extract_keyword_target(text, SEARCH_KEYWORDS)
    return [keyword] if keyword else []


def _grep_args(text: str) -> List[str]:
    quoted = extract_quoted(text)
    pattern = quoted[0] if quoted else extract_keyword_target(text, GREP_KEYWORDS)
    if not pattern:
        return []
    args = [pattern]
    location = LOCATION_PATTERN.search(text)
    if location:
        args.append(as_directory(location.group(1)))
    return args


POCKET_TRIGGERS = {
    "ls": ["목록", "파일 목록", "디렉토리", "폴더", "리스트", "보여줘", "list", "list files", "show files"],
    "info": ["정보", "상세 정보", "파일 정보", "메타데이터", "속성", "info", "metadata"],
    "load": ["로드", "내용", "읽기", "열기", "파일 내용", "보기", "load", "read", "open"],
    "summarize": ["요약", "정리", "분석", "요약해줘", "간략하게", "summarize", "summary"],
    "tree": ["트리", "구조", "폴더 구조", "디렉토리 구조", "계층", "tree", "structure"],
    "search": ["검색", "찾기", "파일 찾기", "이름 검색", "찾아줘", "search", "find"],
    "grep": ["내용 검색", "텍스트 검색", "문자열 검색", "코드 검색", "패턴 검색", "grep"],
    "bucket": ["버킷", "버킷 정보", "저장소", "저장소 정보", "스토리지", "bucket", "storage"],
}

POCKET_GUIDANCE = """Paths are bucket keys; directories end with '/'.
"docs 폴더" means the path "docs/". "깊이 2" or "2단계" means --depth=2 for tree.
Use search for file names and grep for text inside files."""


class PocketPlugin(ClientPlugin):
    """Object-storage commands."""

    id = "pocket"
    name = "Pocket"
    domain = "pocket"
    description = "Browse and read files in the shared object-storage bucket"
    client_name = "storage client"

    def __init__(self, client: Optional[PocketClient] = None, model: Optional[ModelCapability] = None):
        super().__init__(client)
        self.model = model

    def get_commands(self) -> List[CommandDefinition]:
        return [
            self.define("ls", "List files under a path", self.list_files,
                        syntax="@pocket:ls [path]",
                        examples=["@pocket:ls", "@pocket:ls docs/"]),
            self.define("info", "Show file or directory metadata", self.object_info,
                        syntax="@pocket:info <path>",
                        examples=["@pocket:info docs/readme.md"]),
            self.define("load", "Load a file's content", self.load_file,
                        syntax="@pocket:load <path>",
                        examples=["@pocket:load docs/readme.md"]),
            self.define("summarize", "Summarize a file with the language model", self.summarize_file,
                        syntax="@pocket:summarize <path>",
                        examples=["@pocket:summarize reports/q3.md"]),
            self.define("tree", "Show the directory structure under a path", self.tree,
                        syntax="@pocket:tree [path] [--depth=<depth>]",
                        examples=["@pocket:tree", "@pocket:tree docs/ --depth=2"]),
            self.define("search", "Search file names", self.search,
                        syntax="@pocket:search <keyword>",
                        examples=["@pocket:search readme"]),
            self.define("grep", "Search text inside files", self.grep,
                        syntax="@pocket:grep <pattern> [path]",
                        examples=['@pocket:grep "TODO" src/']),
            self.define("bucket", "Show bucket information", self.bucket_info,
                        syntax="@pocket:bucket",
                        examples=["@pocket:bucket"]),
        ]

    def get_descriptor(self) -> DomainDescriptor:
        return DomainDescriptor(
            domain=self.domain,
            triggers=POCKET_TRIGGERS,
            extractors={
                "ls": _ls_args,
                "info": _path_args,
                "load": _path_args,
                "summarize": _path_args,
                "tree": _tree_args,
                "search": _search_args,
                "grep": _grep_args,
            },
            default_action="ls",
            guidance=POCKET_GUIDANCE,
            quote_aware={"grep"},
        )

    # Handlers

    async def list_files(self, args: List[str]) -> Dict[str, Any]:
        client = self.require_client()
        path = as_directory(args[0]) if args else ""
        objects = await client.list_objects(path)

        if not objects:
            return {"content": f"No files under `{path or '/'}`.", "data": {"path": path, "objects": []}}

        directories = [obj for obj in objects if obj.is_directory]
        files = [obj for obj in objects if not obj.is_directory]

        lines = [f"# Files: {path or '/'}", ""]
        if directories:
            lines.append("## Directories")
            lines.extend(f"- `{obj.key.rstrip('/').split('/')[-1]}/`" for obj in directories)
            lines.append("")
        if files:
            lines.append("## Files")
            lines.extend(f"- `{obj.key.split('/')[-1]}` ({format_size(obj.size)})" for obj in files)

        return {
            "content": "\n".join(lines).rstrip(),
            "data": {"path": path, "objects": [obj.key for obj in objects]},
        }

    async def object_info(self, args: List[str]) -> Dict[str, Any]:
        client = self.require_client()
        key = self._require_path(args, "info")
        info = await client.get_object_info(key)
        lines = [f"# {key}", ""] + [f"- **{name}**: {value}" for name, value in info.items()]
        return {"content": "\n".join(lines), "data": info}

    async def load_file(self, args: List[str]) -> Dict[str, Any]:
        key = self._require_path(args, "load")
        text = await self._read_text(key)
        truncated = len(text) > MAX_LOAD_CHARS
        body = text[:MAX_LOAD_CHARS]
        content = f"# {key}\n\n```\n{body}\n```"
        if truncated:
            content += f"\n\n_Showing the first {MAX_LOAD_CHARS} of {len(text)} characters._"
        return {"content": content, "data": {"key": key, "length": len(text), "truncated": truncated}}

    async def summarize_file(self, args: List[str]) -> Dict[str, Any]:
        key = self._require_path(args, "summarize")
        if self.model is None:
            raise PluginUnavailableError("summarize requires a language model", details={"plugin": self.id})

        text = await self._read_text(key)
        prompt = (
            "Summarize the following file in a few bullet points. "
            "Answer in the language of the file.\n\n"
            f"FILE: {key}\n\n{text[:MAX_LOAD_CHARS]}"
        )
        summary = await self.model.query(prompt)
        return {"content": f"# Summary: {key}\n\n{summary.strip()}", "data": {"key": key}}

    async def tree(self, args: List[str]) -> Dict[str, Any]:
        client = self.require_client()
        positionals, flags = split_flags(args)
        root = as_directory(positionals[0]) if positionals else ""
        try:
            depth = max(int(flags.get("depth", DEFAULT_TREE_DEPTH)), 1)
        except ValueError:
            raise ValueError(f"--depth must be a number, got '{flags['depth']}'")

        objects = await client.list_all_objects(root)
        nested: Dict[str, Any] = {}
        for obj in objects:
            parts = [part for part in obj.key[len(root):].split("/") if part]
            node = nested
            for index, part in enumerate(parts[:depth]):
                is_dir = index < len(parts) - 1 or obj.is_directory
                node = node.setdefault(f"{part}/" if is_dir else part, {})

        lines = [f"{root or '/'}"]
        self._render_tree(nested, "", lines)
        return {"content": "```\n" + "\n".join(lines) + "\n```", "data": {"root": root, "depth": depth}}

    async def search(self, args: List[str]) -> Dict[str, Any]:
        client = self.require_client()
        if not args:
            raise ValueError("Usage: @pocket:search <keyword>")
        keyword = args[0].lower()

        objects = await client.list_all_objects("")
        matches = [
            obj.key for obj in objects
            if not obj.is_directory and keyword in obj.key.split("/")[-1].lower()
        ]

        if not matches:
            return {"content": f"No file names contain `{args[0]}`.", "data": {"matches": []}}
        lines = [f"# Search: {args[0]} ({len(matches)} match(es))", ""] + [f"- `{key}`" for key in matches]
        return {"content": "\n".join(lines), "data": {"matches": matches}}

    async def grep(self, args: List[str]) -> Dict[str, Any]:
        client = self.require_client()
        if not args:
            raise ValueError("Usage: @pocket:grep <pattern> [path]")
        pattern = args[0]
        root = as_directory(args[1]) if len(args) > 1 else ""
        needle = pattern.lower()

        candidates = [
            obj for obj in await client.list_all_objects(root)
            if not obj.is_directory and any(obj.key.lower().endswith(ext) for ext in TEXT_EXTENSIONS)
        ][:MAX_GREP_FILES]

        matches: List[Dict[str, Any]] = []
        for obj in candidates:
            text = (await client.get_object(obj.key)).decode("utf-8", errors="replace")
            for number, line in enumerate(text.splitlines(), start=1):
                if needle in line.lower():
                    matches.append({"key": obj.key, "line": number, "text": line.strip()})
                    if len(matches) >= MAX_GREP_MATCHES:
                        break
            if len(matches) >= MAX_GREP_MATCHES:
                break

        if not matches:
            return {"content": f"`{pattern}` not found under `{root or '/'}`.", "data": {"matches": []}}

        lines = [f"# grep: {pattern} ({len(matches)} match(es))", ""]
        lines.extend(f"- `{m['key']}:{m['line']}` {m['text']}" for m in matches)
        return {"content": "\n".join(lines), "data": {"matches": matches}}

    async def bucket_info(self, args: List[str]) -> Dict[str, Any]:
        info = await self.require_client().get_bucket_info()
        lines = ["# Bucket", ""] + [f"- **{name}**: {value}" for name, value in info.items()]
        return {"content": "\n".join(lines), "data": info}

    # Helpers

    def _require_path(self, args: List[str], command: str) -> str:
        if not args or not args[0].strip():
            raise ValueError(f"Usage: @pocket:{command} <path>")
        return args[0].strip()

    async def _read_text(self, key: str) -> str:
        raw = await self.require_client().get_object(key)
        return raw.decode("utf-8", errors="replace")

    def _render_tree(self, node: Dict[str, Any], indent: str, lines: List[str]) -> None:
        entries = sorted(node.items(), key=lambda item: (not item[0].endswith("/"), item[0]))
        for index, (name, child) in enumerate(entries):
            last = index == len(entries) - 1
            lines.append(f"{indent}{'└── ' if last else '├── '}{name}")
            if child:
                self._render_tree(child, indent + ("    " if last else "│   "), lines)
