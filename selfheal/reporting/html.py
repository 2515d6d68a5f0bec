from __future__ import annotations

from datetime import datetime
from html import escape

from selfheal.core.metadata import HealingEvent, HealingSummary

STYLE = """
        body { font-family: Arial, sans-serif; max-width: 1000px; margin: 20px auto; padding: 20px; background: #fff; }
        h1 { border-bottom: 2px solid #333; padding-bottom: 10px; }
        .summary { background: #f5f5f5; padding: 15px; margin: 20px 0; border: 1px solid #ddd; }
        .summary table { width: 100%; border-collapse: collapse; }
        .summary td { padding: 8px; border-bottom: 1px solid #ddd; }
        .summary td:first-child { font-weight: bold; width: 200px; }
        .healing-item { border: 1px solid #ddd; padding: 15px; margin: 15px 0; background: #fafafa; }
        .healing-item.success { border-left: 4px solid green; }
        .healing-item.failed { border-left: 4px solid red; }
        .test-name { font-size: 1.1em; font-weight: bold; margin-bottom: 10px; }
        .status { display: inline-block; padding: 3px 8px; margin-left: 10px; font-size: 0.85em; font-weight: bold; }
        .status.success { background: #d4edda; color: #155724; }
        .status.failed { background: #f8d7da; color: #721c24; }
        .locator { margin: 10px 0; }
        .locator-label { font-weight: bold; margin-bottom: 3px; }
        .locator-code { background: white; padding: 8px; border: 1px solid #ddd; font-family: monospace; font-size: 0.9em; word-break: break-all; }
        .error { background: #fff3cd; padding: 8px; margin: 10px 0; border: 1px solid #ffc107; font-size: 0.9em; }
        .attempts ul { list-style: none; padding: 0; }
        .attempts li { padding: 5px; margin: 3px 0; background: white; border: 1px solid #ddd; font-family: monospace; font-size: 0.85em; }
        .timestamp { color: #666; font-size: 0.85em; margin-top: 10px; }
        footer { margin-top: 30px; padding-top: 20px; border-top: 1px solid #ddd; text-align: center; color: #666; font-size: 0.9em; }
"""


def _display_time(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp).strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    except ValueError:
        return timestamp


def _render_event(index: int, event: HealingEvent) -> str:
    status = "success" if event.success else "failed"
    parts = [
        f'<div class="healing-item {status}">',
        f'<div class="test-name">{index}. {escape(event.test_name)}'
        f'<span class="status {status}">{status.upper()}</span></div>',
        '<div class="locator"><div class="locator-label">Original Locator (Failed):</div>'
        f'<div class="locator-code">{escape(event.original_locator)}</div></div>',
    ]
    if event.success:
        parts.append(
            '<div class="locator"><div class="locator-label">Healed Locator (Working):</div>'
            f'<div class="locator-code">{escape(event.healed_locator)}</div></div>'
        )
    first_line = event.error_message.splitlines()[0] if event.error_message else ""
    parts.append(f'<div class="error"><strong>Error:</strong> {escape(first_line)}</div>')
    if event.attempted_locators:
        items = "".join(
            f"<li>{escape(locator)} {'&#10003;' if event.success and locator == event.healed_locator else '&#10007;'}</li>"
            for locator in event.attempted_locators
        )
        parts.append(
            f'<div class="attempts"><strong>Attempted Locators ({len(event.attempted_locators)}):</strong>'
            f"<ul>{items}</ul></div>"
        )
    timing = ""
    if event.healing_duration_ms:
        timing = f" | Healing time: {event.healing_duration_ms}ms ({event.healing_duration_ms / 1000:.2f}s)"
    parts.append(f'<div class="timestamp">{escape(_display_time(event.timestamp))}{timing}</div>')
    parts.append("</div>")
    return "\n".join(parts)


def render_html(summary: HealingSummary) -> str:
    """Renders the full report document from a summary."""

    if summary.changes:
        details = "\n".join(_render_event(index, event) for index, event in enumerate(summary.changes, start=1))
    else:
        details = "<p>No healing events recorded.</p>"
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Self-Healing Test Report</title>
    <style>{STYLE}    </style>
</head>
<body>
    <h1>Self-Healing Test Report</h1>
    <div class="summary">
        <h2>Summary</h2>
        <table>
            <tr><td>Total Tests:</td><td>{summary.total_tests}</td></tr>
            <tr><td>Total Healing Attempts:</td><td>{summary.total_healing_attempts}</td></tr>
            <tr><td>Successfully Healed:</td><td>{summary.successful_healing}</td></tr>
            <tr><td>Failed to Heal:</td><td>{summary.failed_healing}</td></tr>
            <tr><td>Success Rate:</td><td>{summary.success_rate}%</td></tr>
        </table>
    </div>
    <h2>Healing Details</h2>
{details}
    <footer>
        <p>Generated on {escape(_display_time(summary.timestamp))}</p>
    </footer>
</body>
</html>
"""
