"""Task-type classifier: one-letter id prefix -> behavioural contract.

Each of the 17 type tags carries its own prohibited/mandatory lists and the
type-specific middle of the execution sequence; the shared opening and
closing steps are added by :mod:`kollaborate.prompts.builder`.
"""

from __future__ import annotations

from dataclasses import dataclass

from kollaborate.protocol.models import TYPE_TAGS


@dataclass(frozen=True, slots=True)
class TaskCategory:
    tag: str
    name: str
    title: str
    requirements: str
    prohibited: tuple[str, ...]
    mandatory: tuple[str, ...]
    steps: tuple[str, ...]
    handoff: str = "Persist changes"
    build_required: bool = True


_CATEGORIES: tuple[TaskCategory, ...] = (
    TaskCategory(
        tag="F",
        name="FEATURE",
        title="FEATURE IMPLEMENTATION",
        requirements="Production-Ready Implementation",
        prohibited=(
            "Stub implementations or placeholder code",
            "Missing error handling or edge case coverage",
            "Incomplete feature functionality",
            "Skipping integration with existing systems",
        ),
        mandatory=(
            "Complete feature implementation with all user-facing functionality",
            "Full error handling and input validation",
            "Integration with existing codebase patterns",
            "Feature must be fully functional and testable",
            "Update related documentation if public-facing",
        ),
        steps=(
            "FEATURE IMPLEMENTATION: Build complete, production-ready feature",
            "INTEGRATION: Ensure seamless integration with existing architecture",
            "VALIDATION: Test feature functionality end-to-end",
        ),
    ),
    TaskCategory(
        tag="R",
        name="REFACTOR",
        title="CODE REFACTORING",
        requirements="Behavior-Preserving Improvements",
        prohibited=(
            "Changing existing functionality or behavior",
            "Breaking existing tests or API contracts",
            "Introducing new features during refactoring",
            "Incomplete refactoring leaving mixed patterns",
        ),
        mandatory=(
            "Preserve all existing functionality exactly",
            "Improve code structure, readability, or maintainability",
            "Remove duplication and improve patterns",
            "All existing tests must continue to pass",
            "Zero tolerance for behavior changes",
        ),
        steps=(
            "REFACTORING: Restructure code while preserving exact behavior",
            "TEST VALIDATION: Verify all existing tests pass unchanged",
        ),
    ),
    TaskCategory(
        tag="B",
        name="BUG FIX",
        title="BUG FIX",
        requirements="Root Cause Resolution",
        prohibited=(
            "Symptom fixes without addressing root cause",
            "Workarounds that mask underlying issues",
            "Fixes that introduce new bugs or regressions",
            "Missing validation or reproduction steps",
        ),
        mandatory=(
            "Identify and fix root cause, not just symptoms",
            "Add tests to prevent regression",
            "Verify fix resolves the reported issue",
            "Ensure no new bugs introduced",
            "Document fix rationale if non-obvious",
        ),
        steps=(
            "ROOT CAUSE ANALYSIS: Identify underlying cause of bug",
            "FIX IMPLEMENTATION: Apply fix addressing root cause",
            "REGRESSION TESTING: Add tests preventing future recurrence",
        ),
    ),
    TaskCategory(
        tag="T",
        name="TEST",
        title="TEST IMPLEMENTATION",
        requirements="Comprehensive Coverage",
        prohibited=(
            "Trivial tests without meaningful assertions",
            "Missing edge cases or error path testing",
            "Tests that don't validate actual behavior",
            "Incomplete coverage of target module",
        ),
        mandatory=(
            "Achieve >80% coverage for target module",
            "Include edge cases and error paths",
            "Use project testing conventions and patterns",
            "All tests must pass before completion",
            "Test both success and failure scenarios",
        ),
        steps=(
            "TEST IMPLEMENTATION: Create comprehensive test suite",
            "COVERAGE VALIDATION: Verify >80% coverage achieved",
            "TEST EXECUTION: Run all tests - require 100% pass rate",
        ),
    ),
    TaskCategory(
        tag="D",
        name="DOCUMENTATION",
        title="DOCUMENTATION",
        requirements="Clear & Accurate",
        prohibited=(
            "Inaccurate or outdated information",
            "Missing examples or usage instructions",
            "Documentation that doesn't match code",
            "Over-documenting obvious code",
        ),
        mandatory=(
            "Accurate API documentation with examples",
            "Clear usage instructions and patterns",
            "Follow project documentation standards",
            "Update README if public-facing changes",
            "Inline comments only for complex logic",
        ),
        steps=(
            "DOCUMENTATION CREATION: Generate comprehensive documentation",
            "ACCURACY VERIFICATION: Ensure docs match current code",
            "EXAMPLE VALIDATION: Test all code examples work",
        ),
        build_required=False,
    ),
    TaskCategory(
        tag="P",
        name="PERFORMANCE",
        title="PERFORMANCE OPTIMIZATION",
        requirements="Measurable Improvements",
        prohibited=(
            "Premature optimization without profiling",
            "Performance improvements that break functionality",
            "Missing benchmarks or metrics",
            "Optimizations that reduce code maintainability significantly",
        ),
        mandatory=(
            "Profile current implementation first",
            "Identify actual bottlenecks with data",
            "Implement optimizations with measurable impact",
            "Benchmark improvements (include metrics)",
            "Preserve functionality - all tests pass",
        ),
        steps=(
            "PROFILING: Measure current performance baseline",
            "OPTIMIZATION: Implement performance improvements",
            "BENCHMARKING: Measure improvements with metrics",
            "TEST VALIDATION: Verify all tests still pass",
        ),
    ),
    TaskCategory(
        tag="A",
        name="ARCHITECTURE",
        title="ARCHITECTURE",
        requirements="Scalable Design",
        prohibited=(
            "Ad-hoc architecture without design rationale",
            "Violating existing architectural patterns",
            "Missing consideration for extensibility",
            "Incomplete implementation of architectural changes",
        ),
        mandatory=(
            "Follow established architectural patterns",
            "Consider scalability and maintainability",
            "Complete implementation across all layers",
            "Document architectural decisions",
            "Ensure proper separation of concerns",
        ),
        steps=(
            "ARCHITECTURE IMPLEMENTATION: Build complete architectural solution",
            "PATTERN VALIDATION: Ensure consistency with project patterns",
        ),
    ),
    TaskCategory(
        tag="S",
        name="SECURITY",
        title="SECURITY",
        requirements="Defense in Depth",
        prohibited=(
            "Security through obscurity",
            "Incomplete input validation",
            "Missing threat modeling",
            "Introducing new vulnerabilities",
        ),
        mandatory=(
            "Address OWASP Top 10 vulnerabilities",
            "Implement proper input validation and sanitization",
            "Use secure coding practices",
            "Add security tests for vulnerability prevention",
            "Document security considerations",
        ),
        steps=(
            "SECURITY IMPLEMENTATION: Apply security hardening",
            "VULNERABILITY TESTING: Verify fixes address security issues",
        ),
    ),
    TaskCategory(
        tag="H",
        name="HOTFIX",
        title="HOTFIX (URGENT PRODUCTION FIX)",
        requirements="Critical Production Issue Resolution",
        prohibited=(
            "Scope creep beyond immediate critical issue",
            "Refactoring or improvements not related to fix",
            "Risky changes that could introduce new issues",
            "Missing rollback strategy",
        ),
        mandatory=(
            "Minimal invasive change - surgical precision",
            "Address critical production issue immediately",
            "Include rollback plan in commit message",
            "Verify fix in production-like environment",
            "Document impact and resolution clearly",
        ),
        steps=(
            "MINIMAL FIX: Apply smallest possible change to resolve critical issue",
            "VERIFICATION: Test thoroughly in staging/production-like environment",
        ),
        handoff="Document fix and rollback plan",
    ),
    TaskCategory(
        tag="M",
        name="MIGRATION",
        title="MIGRATION",
        requirements="Safe Data/Schema Transformations",
        prohibited=(
            "Destructive migrations without backups",
            "Missing rollback/downgrade path",
            "Untested migration scripts",
            "Migrations that cause downtime without approval",
        ),
        mandatory=(
            "Idempotent migration scripts (safe to run multiple times)",
            "Complete rollback/downgrade implementation",
            "Test with realistic data volumes",
            "Document data backup strategy",
            "Zero data loss guarantee",
        ),
        steps=(
            "MIGRATION IMPLEMENTATION: Create idempotent up/down scripts",
            "TESTING: Verify with realistic data, test rollback path",
        ),
        handoff="Document migration steps",
    ),
    TaskCategory(
        tag="I",
        name="INTEGRATION",
        title="INTEGRATION",
        requirements="Third-Party Service Connections",
        prohibited=(
            "Hardcoded credentials or API keys",
            "Missing error handling for external failures",
            "No retry logic or circuit breakers",
            "Synchronous blocking calls without timeouts",
        ),
        mandatory=(
            "Secure credential management (env vars, secrets manager)",
            "Comprehensive error handling and retry logic",
            "Timeout configuration for all external calls",
            "Logging for debugging integration issues",
            "Mock/stub implementations for testing",
        ),
        steps=(
            "INTEGRATION IMPLEMENTATION: Build resilient external service connection",
            "ERROR HANDLING: Implement retry, timeout, circuit breaker patterns",
            "TESTING: Test with mocks and real service (if available)",
        ),
        handoff="Document integration setup",
    ),
    TaskCategory(
        tag="C",
        name="CHORE",
        title="CHORE",
        requirements="Maintenance & Dependency Management",
        prohibited=(
            "Breaking changes in dependency updates",
            "Updating dependencies without testing",
            "Ignoring deprecation warnings",
            "Incomplete cleanup of unused code/dependencies",
        ),
        mandatory=(
            "Test all dependency updates thoroughly",
            "Check for breaking changes in changelogs",
            "Update lockfiles and dependency declarations",
            "Clean up unused dependencies and code",
            "Verify build and tests pass after updates",
        ),
        steps=(
            "MAINTENANCE: Update dependencies, clean up code, address warnings",
            "COMPATIBILITY: Check breaking changes, update usage if needed",
            "TEST VALIDATION: Run full test suite to verify no regressions",
        ),
        handoff="Document changes made",
    ),
    TaskCategory(
        tag="E",
        name="EXPERIMENT",
        title="EXPERIMENT (POC/SPIKE)",
        requirements="Proof of Concept & Research",
        prohibited=(
            "Merging experimental code to main without refactoring",
            "Missing documentation of findings",
            "No clear success/failure criteria",
            "Experiments that don't answer the research question",
        ),
        mandatory=(
            "Clear hypothesis and success criteria",
            "Document findings, learnings, trade-offs",
            "Working proof-of-concept (even if hacky)",
            "Recommendation: continue, iterate, or abandon",
            "Keep experimental code isolated (branch/feature flag)",
        ),
        steps=(
            "EXPERIMENTATION: Build working POC to test hypothesis",
            "DOCUMENTATION: Record findings, learnings, recommendations",
            "OPTIONAL BUILD: Build verification only if integrating",
        ),
        handoff="Share experiment results",
        build_required=False,
    ),
    TaskCategory(
        tag="U",
        name="UX",
        title="UX (USER EXPERIENCE)",
        requirements="User Experience Enhancements",
        prohibited=(
            "Breaking existing user workflows",
            "Ignoring accessibility standards (WCAG)",
            "Poor mobile responsiveness",
            "Missing loading/error states",
        ),
        mandatory=(
            "Maintain consistency with existing UI patterns",
            "Implement proper loading and error states",
            "Ensure keyboard navigation and screen reader support",
            "Test on multiple devices/browsers",
            "Preserve or improve existing functionality",
        ),
        steps=(
            "UX IMPLEMENTATION: Build user-friendly, accessible interface",
            "ACCESSIBILITY: Test keyboard nav, screen readers, color contrast",
            "RESPONSIVE: Verify mobile, tablet, desktop layouts",
        ),
        handoff="Document UX improvements",
    ),
    TaskCategory(
        tag="V",
        name="VALIDATION",
        title="VALIDATION",
        requirements="Data Validation & Schema Enforcement",
        prohibited=(
            "Client-side only validation (always validate server-side)",
            "Missing validation for edge cases",
            "Poor error messages that don't guide users",
            "Inconsistent validation rules across endpoints",
        ),
        mandatory=(
            "Server-side validation for all inputs",
            "Clear, actionable error messages",
            "Type safety and schema enforcement",
            "Validation for all edge cases and data types",
            "Consistent validation rules across system",
        ),
        steps=(
            "VALIDATION IMPLEMENTATION: Build comprehensive input validation",
            "ERROR HANDLING: Clear, actionable error messages",
            "TESTING: Test with valid, invalid, edge case inputs",
        ),
        handoff="Document validation rules",
    ),
    TaskCategory(
        tag="W",
        name="WORKFLOW",
        title="WORKFLOW (CI/CD/AUTOMATION)",
        requirements="CI/CD & Automation Pipelines",
        prohibited=(
            "Workflows that can't be run locally for testing",
            "Missing error handling and notifications",
            "Secrets hardcoded in workflow files",
            "Workflows without timeout limits",
        ),
        mandatory=(
            "Workflows can be tested locally",
            "Proper secret management (encrypted secrets)",
            "Clear failure notifications",
            "Timeout limits to prevent hanging jobs",
            "Documentation of workflow triggers and steps",
        ),
        steps=(
            "WORKFLOW IMPLEMENTATION: Create automation pipeline",
            "LOCAL TESTING: Verify workflow can run locally",
            "DEPLOYMENT: Test workflow in CI/CD environment",
            "DOCUMENTATION: Document workflow triggers, steps, secrets",
        ),
        handoff="Share workflow documentation",
        build_required=False,
    ),
    TaskCategory(
        tag="X",
        name="EXPLORATION",
        title="EXPLORATION (RESEARCH)",
        requirements="Research & Investigation",
        prohibited=(
            "Surface-level research without deep analysis",
            "No documentation of findings",
            "Missing recommendations or next steps",
            "Biased analysis favoring predetermined outcome",
        ),
        mandatory=(
            "Comprehensive analysis of topic/codebase",
            "Document findings with evidence and examples",
            "Present options with pros/cons analysis",
            "Clear recommendations for next steps",
            "Reference sources and decision criteria",
        ),
        steps=(
            "RESEARCH: Deep investigation of topic/codebase/technology",
            "ANALYSIS: Evaluate options, identify trade-offs",
            "DOCUMENTATION: Comprehensive findings document",
            "RECOMMENDATIONS: Actionable next steps with rationale",
        ),
        handoff="Share research findings",
        build_required=False,
    ),
)

# Keyed in TYPE_TAGS order.
CATEGORIES: dict[str, TaskCategory] = {tag: c for tag in TYPE_TAGS for c in _CATEGORIES if c.tag == tag}


def classify_type(type_tag: str) -> TaskCategory:
    """Return the category for a one-letter type tag (``"R"`` -> REFACTOR)."""
    try:
        return CATEGORIES[type_tag]
    except KeyError:
        raise ValueError(f"Unknown task type tag: {type_tag!r}") from None
