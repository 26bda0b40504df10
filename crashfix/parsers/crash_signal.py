from __future__ import annotations

import re
from typing import Dict, List, Optional

from crashfix.models import FileLocation


# Known crash signals -> short description fed to the model as a hint.
CRASH_PATTERNS: Dict[str, str] = {
    "EXC_BAD_ACCESS": "Memory access violation: released object, dangling pointer, force unwrap of nil",
    "EXC_BREAKPOINT": "Swift runtime trap: force unwrap (!), fatalError(), array index out of range",
    "EXC_CRASH (SIGABRT)": "Explicit abort: assertion failure, uncaught exception, precondition failure",
    "EXC_RESOURCE": "Resource limit exceeded: memory limit, CPU overuse, watchdog timeout",
    "EXC_BAD_INSTRUCTION": "Illegal instruction: implicitly unwrapped optional was nil",
    "SIGABRT": "Process abort: NSException, fatalError, UI update off the main thread",
    "SIGSEGV": "Segmentation fault: invalid memory access, C/C++ interop",
}


def _patterns(extension: str) -> Dict[str, re.Pattern[str]]:
    ext = re.escape(extension.lstrip("."))
    return {
        # File.swift:123
        "file_colon_line": re.compile(rf"(\w+\.{ext}):(\d+)"),
        # File.swift ... line 123 (usual Crashlytics subtitle shape)
        "file_then_line": re.compile(rf"(\w+\.{ext})\b.*?\bline\s+(\d+)", re.IGNORECASE),
        # File.swift on its own
        "file_only": re.compile(rf"(\w+\.{ext})\b"),
        # TypeName.method( -> TypeName.swift (inferred)
        "call_site": re.compile(r"(\w+)\.\w+\("),
    }


def _as_text(value: object) -> str:
    return value if isinstance(value, str) else ""


def extract_file_locations(title: object, subtitle: object, *, extension: str = "swift") -> List[FileLocation]:
    """
    Best-effort extraction of source file hints from crash issue text.

    Patterns are applied in priority order and each one only adds filenames that
    are not already present (first match wins). The call-site inference only runs
    when no real filename was found, so `ChatService.getLastMessage()` next to
    `CrashScenarios.swift` does not produce a bogus `ChatService.swift`.
    """
    combined = f"{_as_text(title)} {_as_text(subtitle)}"
    pats = _patterns(extension)
    found: List[FileLocation] = []
    seen: set[str] = set()

    def _add(name: str, line: Optional[int]) -> None:
        if name in seen:
            return
        seen.add(name)
        found.append(FileLocation(file=name, line=line))

    for m in pats["file_colon_line"].finditer(combined):
        _add(m.group(1), int(m.group(2)))
    for m in pats["file_then_line"].finditer(combined):
        _add(m.group(1), int(m.group(2)))
    for m in pats["file_only"].finditer(combined):
        _add(m.group(1), None)

    if not found:
        ext = extension.lstrip(".")
        for m in pats["call_site"].finditer(combined):
            _add(f"{m.group(1)}.{ext}", None)

    return found


def crash_pattern_hints(title: object) -> List[str]:
    upper = _as_text(title).upper()
    return [desc for key, desc in CRASH_PATTERNS.items() if key in upper]
