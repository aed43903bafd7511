"""Pattern extractor -- regex and line-scanning decomposition of source text.

Best-effort recall, not parsing.  Works on JS/TS, Python, Go and the
common config/doc formats well enough for keyword retrieval; anything it
misses is still reachable through the whole-file entry the processor adds.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import PurePosixPath

from ..models import (
    ApiRoute,
    ClassInfo,
    ExtractedKnowledge,
    FunctionInfo,
    ImportInfo,
    JobInfo,
    MarkdownInfo,
)

logger = logging.getLogger(__name__)

# Noise thresholds.
MIN_COMMENT_CHARS = 5
MIN_TEXT_CHARS = 3
# Bounded excerpt of a function body.
MAX_BODY_CHARS = 300
# Upper bound on how far a class body is scanned for methods.
_MAX_CLASS_SCAN = 5000

_JS_TYPES = {"js", "jsx", "ts", "tsx", "mjs", "cjs", "vue", "svelte"}
_MARKUP_TYPES = {"jsx", "tsx", "html", "vue", "svelte", "hbs"}
_HASH_COMMENT_TYPES = {"py", "rb", "sh", "yml", "yaml", "toml", "ini", "conf", "cfg"}
_MARKDOWN_TYPES = {"md", "mdx", "markdown"}

_CONTROL_WORDS = {
    "if", "for", "while", "switch", "catch", "return", "function", "with", "elif",
    "else", "typeof", "new", "await", "super", "constructor", "import", "require",
}

# --------------------------------------------------------------------------
# Comments
# --------------------------------------------------------------------------

_JSDOC_RE = re.compile(r"/\*\*[\s\S]*?\*/")
_DOCSTRING_RE = re.compile(r'(?:"""|\'\'\')([\s\S]*?)(?:"""|\'\'\')')
_SLASH_COMMENT_RE = re.compile(r"(?<![:\"'\\/])//(?!/)\s*(.*)$", re.MULTILINE)
_HASH_COMMENT_RE = re.compile(r"^\s*#(?![!#])\s*(.*)$", re.MULTILINE)

# --------------------------------------------------------------------------
# Functions / classes
# --------------------------------------------------------------------------

_FUNC_PATTERNS: tuple[re.Pattern[str], ...] = (
    # function name(params) {
    re.compile(r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(?P<name>\w+)\s*\((?P<params>[^)]*)\)", re.MULTILINE),
    # const name = async (params) =>
    re.compile(r"^[ \t]*(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)\s*(?::[^=]+)?=\s*(?:async\s+)?\((?P<params>[^)]*)\)\s*(?::[^=]+)?=>", re.MULTILINE),
    # const name = function (params)
    re.compile(r"^[ \t]*(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)\s*=\s*(?:async\s+)?function\s*\((?P<params>[^)]*)\)", re.MULTILINE),
    # class method:   async name(params) {
    re.compile(r"^[ \t]+(?:static\s+)?(?:async\s+)?(?:public\s+|private\s+|protected\s+)?(?P<name>\w+)\s*\((?P<params>[^)]*)\)\s*(?::\s*[\w<>\[\]., |]+)?\s*\{", re.MULTILINE),
    # python def
    re.compile(r"^[ \t]*(?:async\s+)?def\s+(?P<name>\w+)\s*\((?P<params>[^)]*)\)", re.MULTILINE),
    # go func
    re.compile(r"^func\s+(?:\([^)]+\)\s+)?(?P<name>\w+)\s*\((?P<params>[^)]*)\)", re.MULTILINE),
)

_CLASS_RE = re.compile(
    r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(?P<name>\w+)"
    r"(?:\s+extends\s+(?P<extends>[\w.]+)|\((?P<bases>[^)]*)\))?",
    re.MULTILINE,
)
_METHOD_NAME_RE = re.compile(r"^[ \t]+(?:static\s+)?(?:async\s+)?(?:def\s+)?(?P<name>\w+)\s*\([^)]*\)\s*(?:->[^:]+)?[:{]", re.MULTILINE)

# --------------------------------------------------------------------------
# Exports / imports
# --------------------------------------------------------------------------

_MODULE_EXPORTS_RE = re.compile(r"module\.exports\s*=\s*\{([^}]*)\}")
_MODULE_EXPORT_NAME_RE = re.compile(r"module\.exports\s*=\s*(\w+)\s*;?\s*$", re.MULTILINE)
_EXPORTS_DOT_RE = re.compile(r"(?:module\.)?exports\.(\w+)\s*=\s*([^;\n]+)")
_ES6_EXPORT_RE = re.compile(r"export\s+(?:async\s+)?(?:const|let|var|function\*?|class|interface|type|enum)\s+(\w+)")
_DEFAULT_EXPORT_RE = re.compile(r"export\s+default\s+(?:class\s+|function\s+|async\s+function\s+)?(\w+)")
_PY_ALL_RE = re.compile(r"^__all__\s*=\s*[\[(]([^\])]*)[\])]", re.MULTILINE)

_ES_IMPORT_RE = re.compile(r"""import\s+(?:(?P<what>[\w*{}\s,]+?)\s+from\s+)?['"](?P<src>[^'"]+)['"]""")
_REQUIRE_RE = re.compile(r"""(?:(?:const|let|var)\s+(?P<what>[\w{}\s,]+?)\s*=\s*)?require\s*\(\s*['"](?P<src>[^'"]+)['"]\s*\)""")
_PY_FROM_IMPORT_RE = re.compile(r"^from\s+(?P<src>[\w.]+)\s+import\s+(?:\((?P<paren>[^)]*)\)|(?P<what>[\w \t,*]+))", re.MULTILINE)
_PY_IMPORT_RE = re.compile(r"^import\s+(?P<src>[\w.]+)", re.MULTILINE)

# --------------------------------------------------------------------------
# Literal text / structured data
# --------------------------------------------------------------------------

_JSX_TEXT_RE = re.compile(r">([^<>{}]+)<")
_STRING_LITERAL_RE = re.compile(r"""(["'`])([^"'`\n]{10,}?)\1""")
_JS_ARRAY_RE = re.compile(r"(?:const|let|var)\s+(\w+)\s*(?::[^=]+)?=\s*\[([^\[\]]*)\]")
_JS_OBJECT_RE = re.compile(r"(?:const|let|var)\s+(\w+)\s*(?::[^=]+)?=\s*\{([^{}]*)\}")
_PY_LITERAL_RE = re.compile(r"^([A-Za-z_]\w*)\s*(?::[^=\n]+)?=\s*([\[{])([^\[\]{}]*)[\]}]", re.MULTILINE)
_YAML_SCALAR_RE = re.compile(r"^([A-Za-z_][\w-]*):[ \t]+([^\s#][^#\n]*)$", re.MULTILINE)
_TOML_SCALAR_RE = re.compile(r"^([A-Za-z_][\w-]*)\s*=\s*([^\n#]+)$", re.MULTILINE)

# --------------------------------------------------------------------------
# API routes / schemas / jobs
# --------------------------------------------------------------------------

_EXPRESS_ROUTE_RE = re.compile(
    r"""\b(?:app|router|server|api)\.(?P<method>get|post|put|delete|patch)\s*\(\s*['"`](?P<path>[^'"`]+)['"`]\s*,\s*(?:[\w.]+\s*,\s*)*(?P<handler>[\w.]+)""",
)
_PY_ROUTE_RE = re.compile(
    r"""^@\w+\.(?P<method>get|post|put|delete|patch|route)\(\s*['"](?P<path>[^'"]+)['"][^\n]*\n(?:@[^\n]*\n)*\s*(?:async\s+)?def\s+(?P<handler>\w+)""",
    re.MULTILINE,
)
_MONGOOSE_RE = re.compile(r"new\s+(?:mongoose\.)?Schema\s*\(\s*\{([\s\S]*?)\}\s*[,)]")
_MONGOOSE_MODEL_RE = re.compile(r"""model\s*\(\s*['"](\w+)['"]""")
_SEQUELIZE_RE = re.compile(r"""\.define\s*\(\s*['"](\w+)['"]\s*,\s*\{([\s\S]*?)\}\s*[,)]""")
_SCHEMA_FIELD_RE = re.compile(r"^\s*(\w+)\s*:", re.MULTILINE)
_ORM_CLASS_RE = re.compile(r"^class\s+(\w+)\s*\([^)]*(?:Model|Base)\)\s*:", re.MULTILINE)
_ORM_FIELD_RE = re.compile(r"^[ \t]+(\w+)\s*(?::[^=\n]+)?=\s*(?:\w+\.)*(?:Column|mapped_column|\w+Field)\(", re.MULTILINE)

_CRON_CALL_RE = re.compile(r"""(?:cron\.schedule|schedule\.scheduleJob|new\s+CronJob|crontab)\s*\(\s*['"`]([^'"`]+)['"`]""")
_CRON_KEY_RE = re.compile(r"""^\s*-?\s*(?:cron|schedule)\s*:\s*['"]?([^'"\n]+?)['"]?\s*$""", re.MULTILINE)
_JOB_NAME_RE = re.compile(r"\b(?:class|function|def|const|let|var)\s+(\w*(?:Job|Task|Worker|_job|_task))\b")

_MD_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_FRONT_MATTER_RE = re.compile(r"\A---\s*\n([\s\S]*?)\n---")


def _line_of(source: str, offset: int) -> int:
    return source.count("\n", 0, offset) + 1


def _file_type(file_path: str) -> str:
    return PurePosixPath(file_path).suffix.lower().lstrip(".")


def _doc_body(comment: str) -> str:
    """Text of a `/** ... */` block without delimiters and leading stars."""
    inner = comment[3:-2]
    return " ".join(line.strip().lstrip("*").strip() for line in inner.splitlines()).strip()


def _brace_body(source: str, start: int, limit: int = MAX_BODY_CHARS) -> str | None:
    """Text between the first ``{`` at/after *start* and its partner, bounded."""
    open_at = source.find("{", start, start + 400)
    if open_at < 0:
        return None
    depth = 0
    for i in range(open_at, min(len(source), open_at + 20_000)):
        ch = source[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                body = source[open_at + 1:i].strip()
                return body[:limit]
    return source[open_at + 1:open_at + 1 + limit].strip()


def _indented_body(source: str, start: int, limit: int = MAX_BODY_CHARS) -> str | None:
    """Following lines indented deeper than the ``def`` line, bounded."""
    line_start = source.rfind("\n", 0, start) + 1
    header_indent = len(source[line_start:start]) - len(source[line_start:start].lstrip())
    header_end = source.find("\n", start)
    if header_end < 0:
        return None
    collected: list[str] = []
    size = 0
    for line in source[header_end + 1:].splitlines():
        if line.strip() and len(line) - len(line.lstrip()) <= header_indent:
            break
        collected.append(line)
        size += len(line) + 1
        if size >= limit:
            break
    body = "\n".join(collected).strip()
    return body[:limit] if body else None


def _split_names(what: str | None) -> list[str]:
    if not what:
        return ["default"]
    cleaned = what.replace("{", ",").replace("}", ",")
    names = []
    for part in cleaned.split(","):
        part = part.strip().split(" as ")[0].strip()
        if part:
            names.append(part)
    return names or ["default"]


class PatternExtractor:
    """Heuristic extractor for arbitrary text files."""

    def extract(self, content: str, file_path: str) -> ExtractedKnowledge:
        file_type = _file_type(file_path)
        knowledge = ExtractedKnowledge(file_path=file_path, file_type=file_type)
        if not content.strip():
            return knowledge

        if file_type in _MARKDOWN_TYPES:
            knowledge.markdown = self._markdown(content)
            knowledge.jsx_text_content = self._markdown_paragraphs(content)
            return knowledge

        if file_type == "json":
            knowledge.structured_data = self._json_data(content, file_path)
            knowledge.jobs = self._jobs(content)
            return knowledge

        knowledge.jsdoc_comments = self._doc_comments(content, file_type)
        knowledge.inline_comments = self._inline_comments(content, file_type)
        knowledge.functions = self._functions(content, file_type)
        knowledge.classes = self._classes(content)
        knowledge.exports = self._exports(content)
        knowledge.imports = self._imports(content)
        knowledge.structured_data = self._structured_data(content, file_type)
        knowledge.api_routes = self._api_routes(content)
        knowledge.database_schemas = self._schemas(content)
        knowledge.jobs = self._jobs(content)
        if file_type in _MARKUP_TYPES:
            knowledge.jsx_text_content = self._markup_text(content, file_type)
        return knowledge

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @staticmethod
    def _doc_comments(content: str, file_type: str) -> list[str]:
        comments = [
            c for c in _JSDOC_RE.findall(content)
            if len(_doc_body(c)) >= MIN_COMMENT_CHARS and "@private" not in c
        ]
        if file_type == "py":
            for body in _DOCSTRING_RE.findall(content):
                text = body.strip()
                if len(text) >= MIN_COMMENT_CHARS:
                    comments.append(text)
        return comments

    @staticmethod
    def _inline_comments(content: str, file_type: str) -> list[str]:
        found: list[str] = []
        if file_type in _HASH_COMMENT_TYPES:
            found.extend(m.group(1).strip() for m in _HASH_COMMENT_RE.finditer(content))
        else:
            found.extend(m.group(1).strip() for m in _SLASH_COMMENT_RE.finditer(content))
        return [c for c in found if len(c) >= MIN_COMMENT_CHARS]

    # ------------------------------------------------------------------
    # Functions and classes
    # ------------------------------------------------------------------

    @staticmethod
    def _functions(content: str, file_type: str) -> list[FunctionInfo]:
        functions: list[FunctionInfo] = []
        seen: set[str] = set()
        for pattern in _FUNC_PATTERNS:
            for m in pattern.finditer(content):
                name = m.group("name")
                if name in seen or name in _CONTROL_WORDS:
                    continue
                seen.add(name)
                if file_type == "py":
                    body = _indented_body(content, m.start("name"))
                else:
                    body = _brace_body(content, m.end())
                functions.append(FunctionInfo(
                    name=name,
                    params=" ".join(m.group("params").split()),
                    body=body,
                    line=_line_of(content, m.start("name")),
                ))
        functions.sort(key=lambda f: f.line or 0)
        return functions

    @staticmethod
    def _classes(content: str) -> list[ClassInfo]:
        classes: list[ClassInfo] = []
        for m in _CLASS_RE.finditer(content):
            extends = m.group("extends")
            if extends is None and m.group("bases"):
                extends = m.group("bases").split(",")[0].strip() or None
            scan = content[m.end():m.end() + _MAX_CLASS_SCAN]
            next_class = _CLASS_RE.search(scan)
            if next_class:
                scan = scan[:next_class.start()]
            methods: list[str] = []
            for mm in _METHOD_NAME_RE.finditer(scan):
                name = mm.group("name")
                if name not in _CONTROL_WORDS and name not in methods:
                    methods.append(name)
            classes.append(ClassInfo(
                name=m.group("name"),
                methods=methods,
                extends=extends,
                line=_line_of(content, m.start("name")),
            ))
        return classes

    # ------------------------------------------------------------------
    # Exports and imports
    # ------------------------------------------------------------------

    @staticmethod
    def _exports(content: str) -> dict[str, str]:
        exports: dict[str, str] = {}
        for m in _MODULE_EXPORTS_RE.finditer(content):
            for pair in m.group(1).split(","):
                pair = pair.strip()
                if not pair or pair.startswith("..."):
                    continue
                if ":" in pair:
                    key, _, value = pair.partition(":")
                    exports[key.strip()] = value.strip()
                elif re.fullmatch(r"\w+", pair):
                    exports[pair] = pair
        for m in _MODULE_EXPORT_NAME_RE.finditer(content):
            exports.setdefault("default", m.group(1))
        for m in _EXPORTS_DOT_RE.finditer(content):
            exports[m.group(1)] = m.group(2).strip()[:120]
        for m in _ES6_EXPORT_RE.finditer(content):
            exports[m.group(1)] = m.group(1)
        for m in _DEFAULT_EXPORT_RE.finditer(content):
            exports["default"] = m.group(1)
        for m in _PY_ALL_RE.finditer(content):
            for name in re.findall(r"['\"](\w+)['\"]", m.group(1)):
                exports[name] = name
        return exports

    @staticmethod
    def _imports(content: str) -> list[ImportInfo]:
        imports: list[ImportInfo] = []
        for pattern in (_ES_IMPORT_RE, _REQUIRE_RE):
            for m in pattern.finditer(content):
                imports.append(ImportInfo(source=m.group("src"), names=_split_names(m.group("what"))))
        for m in _PY_FROM_IMPORT_RE.finditer(content):
            names = _split_names(m.group("paren") or m.group("what"))
            imports.append(ImportInfo(source=m.group("src"), names=names))
        for m in _PY_IMPORT_RE.finditer(content):
            imports.append(ImportInfo(source=m.group("src"), names=[m.group("src").split(".")[-1]]))
        return imports

    # ------------------------------------------------------------------
    # Literal text
    # ------------------------------------------------------------------

    @staticmethod
    def _markup_text(content: str, file_type: str) -> list[str]:
        texts: list[str] = []
        for m in _JSX_TEXT_RE.finditer(content):
            text = " ".join(m.group(1).split())
            if len(text) >= MIN_TEXT_CHARS and not re.fullmatch(r"[\W\d_]+", text):
                texts.append(text)
        if file_type in ("jsx", "tsx", "vue", "svelte"):
            for m in _STRING_LITERAL_RE.finditer(content):
                text = m.group(2).strip()
                if "${" in text or text.startswith(("http", "./", "../")) or " " not in text:
                    continue
                texts.append(text)
        return list(dict.fromkeys(texts))

    @staticmethod
    def _markdown(content: str) -> MarkdownInfo:
        title: str | None = None
        description: str | None = None
        front = _FRONT_MATTER_RE.match(content)
        if front:
            for m in _YAML_SCALAR_RE.finditer(front.group(1)):
                key, value = m.group(1).lower(), m.group(2).strip().strip("\"'")
                if key == "title":
                    title = value
                elif key == "description":
                    description = value
        if title is None:
            heading = _MD_HEADING_RE.search(content)
            if heading:
                title = heading.group(1).strip()
        if description is None:
            paragraphs = PatternExtractor._markdown_paragraphs(content)
            if paragraphs:
                description = paragraphs[0][:300]
        return MarkdownInfo(title=title, description=description)

    @staticmethod
    def _markdown_paragraphs(content: str) -> list[str]:
        body = _FRONT_MATTER_RE.sub("", content, count=1)
        paragraphs: list[str] = []
        in_fence = False
        current: list[str] = []
        for line in body.splitlines() + [""]:
            stripped = line.strip()
            if stripped.startswith("```"):
                in_fence = not in_fence
                continue
            if in_fence:
                continue
            if not stripped or stripped.startswith("#"):
                if current:
                    text = " ".join(current)
                    if len(text) >= MIN_TEXT_CHARS:
                        paragraphs.append(text)
                    current = []
                continue
            current.append(stripped)
        return paragraphs

    # ------------------------------------------------------------------
    # Structured data
    # ------------------------------------------------------------------

    @staticmethod
    def _structured_data(content: str, file_type: str) -> dict[str, str]:
        data: dict[str, str] = {}
        if file_type in ("yml", "yaml"):
            for m in _YAML_SCALAR_RE.finditer(content):
                data[m.group(1)] = m.group(2).strip()
            return data
        if file_type in ("toml", "ini", "cfg", "conf", "env"):
            for m in _TOML_SCALAR_RE.finditer(content):
                data[m.group(1)] = m.group(2).strip()
            return data
        if file_type == "py":
            for m in _PY_LITERAL_RE.finditer(content):
                value = " ".join(m.group(3).split())
                if value:
                    data[m.group(1)] = value
            return data
        for pattern in (_JS_ARRAY_RE, _JS_OBJECT_RE):
            for m in pattern.finditer(content):
                value = " ".join(m.group(2).split())
                if value:
                    data[m.group(1)] = value
        return data

    @staticmethod
    def _json_data(content: str, file_path: str) -> dict[str, str]:
        try:
            parsed = json.loads(content)
        except ValueError:
            logger.debug("Not valid JSON, skipping structured data: %s", file_path)
            return {}
        if not isinstance(parsed, dict):
            return {}
        data: dict[str, str] = {}
        for key, value in parsed.items():
            if isinstance(value, (str, int, float, bool)):
                data[str(key)] = str(value)
            elif isinstance(value, dict) and value and all(isinstance(v, (str, int, float, bool)) for v in value.values()):
                data[str(key)] = ", ".join(f"{k}: {v}" for k, v in value.items())
            elif isinstance(value, list) and value and all(isinstance(v, str) for v in value):
                data[str(key)] = ", ".join(value)
        return data

    # ------------------------------------------------------------------
    # Routes, schemas, jobs
    # ------------------------------------------------------------------

    @staticmethod
    def _api_routes(content: str) -> list[ApiRoute]:
        routes: list[ApiRoute] = []
        for pattern in (_EXPRESS_ROUTE_RE, _PY_ROUTE_RE):
            for m in pattern.finditer(content):
                method = m.group("method").upper()
                routes.append(ApiRoute(
                    method="ANY" if method == "ROUTE" else method,
                    path=m.group("path"),
                    handler=m.group("handler"),
                    line=_line_of(content, m.start()),
                ))
        return routes

    @staticmethod
    def _schemas(content: str) -> dict[str, list[str]]:
        schemas: dict[str, list[str]] = {}
        for m in _MONGOOSE_RE.finditer(content):
            model = _MONGOOSE_MODEL_RE.search(content, m.end())
            name = model.group(1) if model else "UnknownModel"
            schemas[name] = _SCHEMA_FIELD_RE.findall(m.group(1))
        for m in _SEQUELIZE_RE.finditer(content):
            schemas[m.group(1)] = _SCHEMA_FIELD_RE.findall(m.group(2))
        for m in _ORM_CLASS_RE.finditer(content):
            scan = content[m.end():m.end() + _MAX_CLASS_SCAN]
            next_class = re.search(r"^\S", scan, re.MULTILINE)
            if next_class:
                scan = scan[:next_class.start()]
            fields = _ORM_FIELD_RE.findall(scan)
            if fields:
                schemas[m.group(1)] = fields
        return schemas

    @staticmethod
    def _jobs(content: str) -> list[JobInfo]:
        jobs: list[JobInfo] = []
        schedules = [m.group(1).strip() for m in _CRON_CALL_RE.finditer(content)]
        schedules += [m.group(1).strip() for m in _CRON_KEY_RE.finditer(content)]
        names = list(dict.fromkeys(m.group(1) for m in _JOB_NAME_RE.finditer(content)))
        for i, name in enumerate(names):
            jobs.append(JobInfo(name=name, schedule=schedules[i] if i < len(schedules) else None))
        for schedule in schedules[len(names):]:
            jobs.append(JobInfo(name="scheduled-job", schedule=schedule))
        return jobs
