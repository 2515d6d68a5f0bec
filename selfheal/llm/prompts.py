from __future__ import annotations

LOCATOR_GRAMMAR = """Use only these locator forms with literal arguments:
  byRole('<role>', { name: '<accessible name>' })
  byText('<visible text>')
  byLabel('<label text>')
  byTestId('<data-testid value>')
  bySelector('<css or xpath selector>')
An optional .first, .last or .nth(<n>) may follow to pick one match."""

SYSTEM_PROMPT = f"""You are a browser test automation expert. Your task is to suggest alternative locators when a test fails.
{LOCATOR_GRAMMAR}
Return ONLY a JSON array of alternative locator strings, nothing else.
Example: ["byRole('button', {{ name: 'Submit' }})", "byTestId('submit-btn')", "bySelector('button.submit')"]"""

VISION_SYSTEM_PROMPT = f"""You are a browser test automation expert. Analyze screenshots to suggest alternative locators.
{LOCATOR_GRAMMAR}
Return ONLY a JSON array of alternative locator strings."""


def truncate_markup(page_source: str, max_chars: int) -> str:
    if len(page_source) <= max_chars:
        return page_source
    return page_source[:max_chars] + "\n... [HTML truncated]"


def build_markup_prompt(page_source: str, failed_locator: str, error_message: str, max_chars: int = 10000) -> str:
    """Formats the text-based repair request."""

    return f"""A browser test failed with a locator error.

Failed Locator: {failed_locator}
Error: {error_message}

Page HTML:
{truncate_markup(page_source, max_chars)}

Analyze the HTML and suggest 3-5 alternative locators that might work.
Consider:
1. More robust selectors (role-based, test-ids, text content)
2. The element's context and nearby elements
3. Prefer byRole, byLabel and byTestId over raw selectors

Return ONLY a JSON array of locator strings."""


def build_image_prompt(failed_locator: str, error_message: str) -> str:
    return (
        f'This screenshot shows a page where the locator "{failed_locator}" failed with error: "{error_message}".\n'
        "Suggest 3-5 alternative locators based on what you see in the screenshot.\n"
        "Return ONLY a JSON array of locator strings."
    )
