"""Instruction text injected into spawned agents.

All functions here are pure string builders: no I/O, no state.
"""

from __future__ import annotations

from kollaborate.prompts.categories import CATEGORIES, TaskCategory

_WORKER_HEADER = """\
You are an autonomous agent inside a task-execution pool. Keep your task's
ledger line in sync with your progress and work without asking for
clarification; the watcher polls your terminal and recycles idle agents."""

_SPEC_INVARIANTS = """\
PROHIBITED SPECIFICATION PATTERNS (triggers rejection):
- Recommending parameter suppression via underscore convention
- Deferred implementation directives (TODO, FIXME, "implement later")
- Placeholder or stub code examples lacking functional completeness
- Default value returns as implementation strategy
- Warning suppression recommendations without root cause resolution

MANDATORY SPECIFICATION PROPERTIES:
- Functional completeness: All specified methods must be fully implementable
- Parameter purposefulness: All inputs must have defined computational roles
- Semantic coherence: Specifications must align with function nomenclature"""

_SPEC_SCHEMA = """\
## Executive Summary
## Requirements Specification
### Functional Requirements
### Non-Functional Requirements
### Invariants
## Architectural Integration
## Implementation Specification (complete, executable code per phase - no stubs)
## File System Mutations
## Integration Surface
## Verification Strategy
## Dependency Manifest
## Acceptance Criteria"""

_ORPHAN_PROTOCOL = """\
When the ordinal sequence of a type has a gap (e.g. R72 missing between R71
and R73):
1. List the running agent sessions. If an agent named R72 exists, read its
   recent output, recover its assignment and restore the line as
   `WORKING: R72 - <recovered description>`.
2. If no such agent exists but R72 is referenced elsewhere in the project
   history, restore it as `NEW: R72 - <description>` so it is picked up again.
3. Otherwise synthesize the most probable task from the surrounding sequence
   as `NEW: R72 - <inferred description>`."""


def _bullets(items: tuple[str, ...] | list[str]) -> list[str]:
    return [f"- {item}" for item in items]


def build_prompt(
    task_id: str,
    description: str,
    category: TaskCategory,
    *,
    ledger_path: str = "TASK_TRACKING.md",
    specs_dir: str = "specs",
    file_target: str | None = None,
) -> str:
    """Build the worker instruction block for one task."""
    task_line = f"{task_id} - {description}"
    if file_target:
        task_line += f" (file: {file_target})"

    steps = [
        f"STATE ACQUISITION: Parse {ledger_path}, locate task {task_id} (status: WORKING)",
        f"SPECIFICATION INGESTION: Load spec from {specs_dir}/{task_id}-*.md",
        *category.steps,
    ]
    if category.build_required:
        steps.append("BUILD VERIFICATION: Execute project build - require zero errors")
    steps.append(f"STATE MUTATION: Update {ledger_path} - WORKING -> DONE (or QA if it needs human review)")
    steps.append(f"HANDOFF: {category.handoff}; the watcher stops this session once {task_id} leaves WORKING")

    sections: list[str] = [
        f"## AUTONOMOUS {category.title} AGENT",
        "",
        f"Reference: {ledger_path}",
        f"Assigned Task: {task_line}",
        f"Task Type: {category.title}",
        "",
        _WORKER_HEADER,
        "",
        f"### {category.name} REQUIREMENTS - {category.requirements}",
        "PROHIBITED PATTERNS:",
        *_bullets(category.prohibited),
        "",
        "MANDATORY REQUIREMENTS:",
        *_bullets(category.mandatory),
        "",
        "### EXECUTION SEQUENCE (initiate within 60 seconds)",
        *[f"{i}. {step}" for i, step in enumerate(steps, start=1)],
        "",
        f"### INITIATE {category.name}",
    ]
    return "\n".join(sections)


def build_spec_prompt(
    task_id: str,
    description: str,
    *,
    spec_path: str,
    min_lines: int = 50,
) -> str:
    sections: list[str] = [
        "## SPECIFICATION SYNTHESIS AGENT",
        "",
        "### TASK CONTEXT",
        f"Identifier: {task_id}",
        f"Description: {description}",
        "",
        "### QUALITY INVARIANTS",
        _SPEC_INVARIANTS,
        "",
        "### ANALYTICAL METHODOLOGY",
        "1. CODEBASE RECONNAISSANCE: Traverse project directory structure, identify architectural patterns",
        "2. PATTERN EXTRACTION: Analyze existing implementations for convention adherence",
        "3. DEPENDENCY MAPPING: Enumerate integration touchpoints and interface contracts",
        "4. SPECIFICATION SYNTHESIS: Generate a comprehensive technical specification with executable code",
        "",
        "### SPECIFICATION SCHEMA",
        f"# Specification: {task_id} - [Descriptive Title]",
        _SPEC_SCHEMA,
        "",
        "### OUTPUT ARTIFACT",
        f"Persist specification to: {spec_path}",
        f"A file of {min_lines} lines or fewer is treated as a placeholder and no worker will start.",
        "",
        "### TERMINATION",
        "The watcher stops this session once the specification is complete.",
        "",
        "### INITIATE SPECIFICATION SYNTHESIS",
    ]
    return "\n".join(sections)


def build_generator_prompt(*, ledger_path: str, batch_size: int = 5) -> str:
    type_lines = [f"  * {tag}## ({cat.name})" for tag, cat in CATEGORIES.items()]
    sections: list[str] = [
        "## TASK DECOMPOSITION & QUEUE MANAGEMENT AGENT",
        "",
        "### PRIMARY DIRECTIVES",
        f"Analyze the state manifest ({ledger_path}) and perform:",
        "1. PROJECT OBJECTIVE EXTRACTION: Parse the primary goal from the document header",
        "2. COMPLETION STATE ANALYSIS: Enumerate finalized tasks (DONE: prefix) to establish progress",
        "3. EXECUTION STATE ASSESSMENT: Identify active work streams and blockers",
        "4. CRITICAL PATH DERIVATION: Determine the next task sequence that maximizes goal velocity",
        "",
        "### TASK SYNTHESIS PARAMETERS",
        f"Generate {batch_size} atomic tasks, one line each:",
        "- SCHEMA: NEW: [TYPE]## - [precise, actionable deliverable] (file: path/to/artifact.ext)",
        "- TASK TYPES (choose the most appropriate):",
        *type_lines,
        "- IDENTIFIER ALLOCATION: Increment from the maximum existing ordinal for each type",
        "- GRANULARITY: Each task scoped to a 1-2 hour execution window",
        "- DEPENDENCY ORDERING: Foundational tasks precede dependent tasks",
        "- PARALLELIZATION: Keep tasks independent so they can run concurrently",
        "- ARTIFACT: Each task declares an explicit file target",
        "",
        "### ORPHAN TASK RECONCILIATION",
        _ORPHAN_PROTOCOL,
        "",
        "### EXECUTION SUMMARY",
        f"- Append the new tasks to {ledger_path} as NEW: lines",
        "- Reconcile any orphaned agent-task associations",
        "- The watcher stops this session once the backlog is replenished",
        "",
        "### INITIATE TASK SYNTHESIS",
    ]
    return "\n".join(sections)


def idle_warning(agent: str, remaining: int, *, ledger_path: str) -> str:
    return (
        f"[IDLE STATE DETECTED] No output change observed for task {agent}. "
        f"If {agent} is complete, change its line from WORKING to DONE in {ledger_path}. "
        f"Termination threshold: {remaining} warning(s) remaining."
    )


def progress_nudge() -> str:
    return (
        "[TEMPORAL CHECKPOINT] Execution window: 2 minutes remaining. "
        "Pre-completion validation required: the build must finish with zero errors. "
        "Stay focused on completing the task."
    )


def protocol_violation(agent: str, *, ledger_path: str) -> str:
    return (
        f"[PROTOCOL VIOLATION] Agent {agent} is running without a matching task entry "
        f"in {ledger_path}. Register the assignment as 'WORKING: {agent} - <task description>' "
        "or this session will be terminated."
    )
