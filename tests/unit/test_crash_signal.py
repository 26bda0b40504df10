from __future__ import annotations

from crashfix.parsers.crash_signal import crash_pattern_hints, extract_file_locations


def _pairs(title, subtitle, **kw):
    return [(loc.file, loc.line) for loc in extract_file_locations(title, subtitle, **kw)]


def test_file_colon_line() -> None:
    assert _pairs("Crash in Foo.swift:42", "") == [("Foo.swift", 42)]


def test_file_then_line_in_subtitle() -> None:
    got = _pairs("EXC_BREAKPOINT", "UserService.swift line 53 in getCurrentUserName")
    assert got == [("UserService.swift", 53)]


def test_crashlytics_subtitle_shape_wins_over_call_site() -> None:
    got = _pairs("EXC_BREAKPOINT", "CrashScenarios.swift - UserService.getCurrentUserName() line 53")
    # A real filename was found, so no UserService.swift is inferred from the call site.
    assert got == [("CrashScenarios.swift", 53)]


def test_file_only_has_no_line() -> None:
    got = _pairs(
        "[CrashlyticsReport.debug.dylib] AppView2.swift - closure #1 in closure #1 in AppView2.body.getter",
        "EXC_BREAKPOINT",
    )
    assert got == [("AppView2.swift", None)]


def test_call_site_inference_when_no_filename() -> None:
    got = _pairs("Fatal error", "CartService.getAveragePrice() crashed")
    assert got == [("CartService.swift", None)]


def test_first_match_wins_and_dedupes() -> None:
    got = _pairs("Foo.swift:10 and Foo.swift:20", "Bar.swift, Foo.swift")
    assert got == [("Foo.swift", 10), ("Bar.swift", None)]


def test_case_insensitive_line_keyword() -> None:
    assert _pairs("Foo.swift LINE 9", "") == [("Foo.swift", 9)]


def test_no_hints_returns_empty() -> None:
    assert extract_file_locations("EXC_BAD_ACCESS (code=1, address=0x0)", "") == []


def test_non_string_inputs_are_treated_as_empty() -> None:
    assert extract_file_locations(None, 123) == []
    assert _pairs(None, "Foo.swift:3") == [("Foo.swift", 3)]


def test_other_extension() -> None:
    assert _pairs("at MainActivity.kt:88", "", extension="kt") == [("MainActivity.kt", 88)]


def test_crash_pattern_hints() -> None:
    hints = crash_pattern_hints("exc_breakpoint in thread 1")
    assert len(hints) == 1
    assert "force unwrap" in hints[0]
    assert crash_pattern_hints("something else") == []
