"""Prompt builders for the background tasks and the implement flow."""

READ_ONLY_CONSTRAINTS = """## System Constraints
You are in READ-ONLY analysis mode.

FORBIDDEN ACTIONS:
- Do NOT use Write, Edit, NotebookEdit, or any file modification tools
- Do NOT request file write permissions
- Do NOT create, modify, or save any files

REQUIRED BEHAVIOR:
- Return ALL content as your direct text response
- Start responses immediately with content (no preamble or meta-commentary)
- The host application will handle file saving automatically

"""


def analysis_prompt(brief: str, brief_path: str) -> str:
    return f"""{READ_ONLY_CONSTRAINTS}## Task
Analyze this issue and provide:
1. Root cause / Feature scope
2. Implementation options with pros/cons
3. Recommended approach
4. Risk assessment

Issue ({brief_path}):
{brief}

## Output Format
Return markdown content directly as your response text.
Do NOT wrap output in code blocks.
Start immediately with the first section header."""


def plan_prompt(brief: str, analysis: str) -> str:
    return f"""{READ_ONLY_CONSTRAINTS}## Task
Create a detailed implementation plan based on the issue brief and analysis.

### Brief
{brief}

### Analysis
{analysis}

## Output Format
Return markdown content directly. Start with the first section header.

### Required Sections

## Plan Summary
- 3-5 bullet points summarizing the approach

## Implementation Tasks
Numbered list of specific tasks:
1. Task description
   - File: path/to/file
   - Changes: Description of modifications

## Files Modified
| File | Changes |
|------|---------|
| path/to/file | Description |

## Testing Approach
- How to verify the implementation

## Risk Mitigation
- Potential issues and how to handle them"""


def _revision_prompt(what: str, current: str, feedback: str) -> str:
    return f"""{READ_ONLY_CONSTRAINTS}## Context
You previously provided the following {what}:

---
{current}
---

## User Feedback
The user has reviewed your {what} and provided the following feedback:

{feedback}

## Task
Please revise your {what} based on this feedback. Maintain the same structure
but address the specific concerns or suggestions raised.

## Output Format
Return the complete revised {what} as markdown.
Start immediately with the first section header.
Do NOT wrap output in code blocks."""


def review_prompt(analysis: str, feedback: str) -> str:
    """Ask for a revised analysis that addresses user feedback."""
    return _revision_prompt("analysis", analysis, feedback)


def plan_review_prompt(plan: str, feedback: str) -> str:
    """Ask for a revised implementation plan that addresses user feedback."""
    return _revision_prompt("implementation plan", plan, feedback)


def commit_message_prompt(issue_id: str, context: str) -> str:
    return f"""Generate a git commit message for closing issue {issue_id}.

Context:
{context}

Requirements:
- First line: type(scope): brief description (max 72 chars)
- Types: feat, fix, refactor, docs, chore
- Blank line after first line
- Body: bullet points explaining key changes
- Footer: Issue: #{issue_id}

Output ONLY the commit message, no explanations.
Do NOT wrap the output in code blocks or backticks."""


def implement_prompt(plan_path: str) -> str:
    """Prompt for the interactive implement session (file edits allowed)."""
    return (
        f"Implement the plan in {plan_path}. "
        "Work through the implementation tasks in order, run the tests "
        "described in the testing approach, and summarize what changed."
    )
