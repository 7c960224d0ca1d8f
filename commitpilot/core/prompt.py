"""Prompt construction for commit message generation and code review."""

import re
from dataclasses import dataclass, field
from enum import Enum

DEFAULT_COMMIT_PROMPT = """\
You are an expert software engineer reviewing a git diff to generate a concise, \
informative commit message.

## Git Diff:
```
{diff}
```

## Context:
- Files changed: {files_changed}
- Insertions: {insertions}
- Deletions: {deletions}
{branch_info}

## Instructions:
1. Analyze the changes carefully
2. Generate a commit message following conventional commits format
3. First line: type(scope): brief summary (max 72 chars)
4. Blank line
5. Body: explain what and why (not how), if necessary
6. Keep it concise but informative

Common types: feat, fix, docs, style, refactor, test, chore

Output only the commit message, no explanations."""

# Appended to custom commit templates that never mention {diff}
DEFAULT_DIFF_SECTION = """

## Git Diff:
```
{diff}
```

## Context:
- Files: {files_changed}
- Changes: +{insertions} -{deletions}"""

DEFAULT_REVIEW_PROMPT = """\
You are an expert code reviewer. Review the following code changes carefully.

## Code to Review:
```
{diff}
```

## Review Criteria:
1. **Correctness**: Are there any bugs or logical errors?
2. **Security**: Are there any security vulnerabilities?
3. **Performance**: Are there any performance issues?
4. **Maintainability**: Is the code readable and maintainable?
5. **Best Practices**: Does it follow best practices?"""

REVIEW_DIFF_SECTION = """

## Code to Review:
```
{diff}
```"""

# Always appended to review prompts: response parsing depends on it
REVIEW_JSON_FORMAT = """## Output Format:
Provide your review in JSON format.
Do not include any explanations outside the JSON structure. Format as follows:
{
  "summary": "Brief overall assessment",
  "issues": [
    {
      "severity": "critical" | "warning" | "info",
      "description": "Issue description",
      "file": "filename (if applicable)",
      "line": line_number (if applicable)
    }
  ],
  "suggestions": [
    "Improvement suggestion 1"
  ]
}

If no issues found, return empty issues array but provide constructive suggestions."""

FEEDBACK_HEADING = "## Additional User Requirements:"

PLACEHOLDER = re.compile(r"\{(\w+)\}")


class ReviewKind(Enum):
    """What a review is looking at."""

    CHANGES = "changes"
    COMMIT = "commit"
    RANGE = "range"
    FILE = "file"

    def describe(self, target: str | None = None) -> str:
        """Human readable label for review output headers."""
        if self is ReviewKind.CHANGES:
            return "Uncommitted changes"
        labels = {
            ReviewKind.COMMIT: "Commit",
            ReviewKind.RANGE: "Commit range",
            ReviewKind.FILE: "File",
        }
        return f"{labels[self]} {target}" if target else labels[self]


@dataclass
class CommitContext:
    """Everything besides the diff that shapes a commit prompt."""

    files_changed: list[str] = field(default_factory=list)
    insertions: int = 0
    deletions: int = 0
    branch_name: str | None = None
    custom_prompt: str | None = None
    feedback: list[str] = field(default_factory=list)


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute ``{name}`` placeholders in one pass, leaving unknown ones intact."""

    def replace(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    return PLACEHOLDER.sub(replace, template)


def build_commit_prompt(
    diff: str, context: CommitContext, custom_template: str | None = None
) -> str:
    """Build the prompt sent to the provider for a commit message."""
    if custom_template is None:
        template = DEFAULT_COMMIT_PROMPT
    elif "{diff}" not in custom_template:
        template = custom_template + DEFAULT_DIFF_SECTION
    else:
        template = custom_template

    branch = context.branch_name or ""
    prompt = render_template(
        template,
        {
            "diff": diff,
            "files_changed": ", ".join(context.files_changed),
            "insertions": str(context.insertions),
            "deletions": str(context.deletions),
            "branch_name": branch,
            "branch_info": f"- Branch: {branch}" if branch else "",
        },
    )

    if context.feedback:
        lines = [f"{i}. {item}" for i, item in enumerate(context.feedback, start=1)]
        prompt += f"\n\n{FEEDBACK_HEADING}\n" + "\n".join(lines) + "\n"

    return prompt


def build_review_prompt(
    diff: str, review_kind: ReviewKind, custom_template: str | None = None
) -> str:
    """Build the review prompt; the JSON output directive is always appended."""
    template = custom_template if custom_template is not None else DEFAULT_REVIEW_PROMPT
    if "{diff}" not in template:
        template += REVIEW_DIFF_SECTION

    prompt = render_template(template, {"diff": diff})
    return f"{prompt}\n\n{REVIEW_JSON_FORMAT}"
