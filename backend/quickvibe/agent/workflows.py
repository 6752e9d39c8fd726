"""Pre-configured multi-agent workflows.

Each template turns request parameters into a list of ``AgentTask`` objects
whose dependencies form the waves the orchestrator runs.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

from quickvibe.agent.orchestrator import AgentTask

WorkflowCategory = Literal["development", "security", "testing", "performance", "devops", "quality"]


class WorkflowParams(BaseModel):
    """Parameters accepted by the built-in templates. Unknown keys are ignored."""

    projectType: str = "web app"
    features: list[str] = Field(default_factory=list)
    techStack: dict[str, Any] = Field(default_factory=dict)
    codebasePath: str = "."
    scope: str = "full"
    testScope: str = "full"
    framework: str = "jest"
    coverage: int = Field(default=80, ge=0, le=100)
    targetMetrics: dict[str, Any] = Field(default_factory=dict)
    currentBaseline: dict[str, Any] = Field(default_factory=dict)
    prUrl: str = ""
    changedFiles: list[str] = Field(default_factory=list)
    reviewDepth: str = "thorough"
    platform: str = "aws"
    cicd: str = "github-actions"
    monitoring: bool = True


@dataclass(frozen=True)
class WorkflowTemplate:
    id: str
    name: str
    description: str
    category: WorkflowCategory
    tags: list[str]
    estimated_duration: int
    complexity: Literal["simple", "moderate", "complex"]
    build_tasks: Callable[[dict[str, Any]], list[AgentTask]] = field(repr=False)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "tags": self.tags,
            "estimated_duration": self.estimated_duration,
            "complexity": self.complexity,
        }

    def tasks_for(self, params: dict[str, Any]) -> list[AgentTask]:
        """Validate ``params`` and build the task list; raises ``ValidationError``."""
        return self.build_tasks(WorkflowParams.model_validate(params).model_dump())


def _requirements(heading: str, items: list[str]) -> str:
    return f"{heading}:\n" + "\n".join(f"- {item}" for item in items)


def _task(
    id: str,
    agent: str,
    description: str,
    prompt: str,
    *,
    priority: int,
    max_tokens: int,
    dependencies: list[str] | None = None,
    context: dict[str, Any] | None = None,
) -> AgentTask:
    return AgentTask(
        id=id,
        agent_name=agent,
        description=description,
        prompt=prompt,
        dependencies=dependencies or [],
        context=context,
        priority=priority,
        max_tokens=max_tokens,
    )


def _fullstack_tasks(params: dict[str, Any]) -> list[AgentTask]:
    project_type = params.get("projectType", "web app")
    features = ", ".join(params.get("features", []))
    tech_stack = json.dumps(params.get("techStack", {}))
    return [
        _task(
            "backend-architecture",
            "backend-architect",
            "Design backend architecture and API structure",
            f"Design a scalable backend architecture for a {project_type} with the following features: {features}.\n"
            f"Tech stack: {tech_stack}\n\n"
            + _requirements("Requirements", [
                "RESTful API design", "Database schema", "Authentication strategy",
                "Error handling patterns", "Scalability considerations",
            ]),
            priority=10,
            max_tokens=16000,
        ),
        _task(
            "database-schema",
            "database-optimizer",
            "Design optimized database schema",
            "Based on the backend architecture, design an optimized database schema.\n\n"
            + _requirements("Requirements", [
                "Normalized schema design", "Index strategy", "Query optimization",
                "Data integrity constraints", "Migration strategy",
            ]),
            dependencies=["backend-architecture"],
            priority=9,
            max_tokens=12000,
        ),
        _task(
            "frontend-architecture",
            "frontend-developer",
            "Design frontend architecture and component structure",
            f"Design a modern frontend architecture for a {project_type}.\nFeatures needed: {features}\n\n"
            + _requirements("Requirements", [
                "Component hierarchy", "State management strategy", "Routing structure",
                "API integration patterns", "Responsive design approach",
            ]),
            dependencies=["backend-architecture"],
            priority=9,
            max_tokens=16000,
        ),
        _task(
            "api-implementation",
            "backend-architect",
            "Implement backend API endpoints",
            "Implement the backend API based on the architecture and database schema.\n\n"
            + _requirements("Requirements", [
                "RESTful endpoints", "Input validation", "Error handling",
                "Authentication/authorization", "API documentation",
            ]),
            dependencies=["backend-architecture", "database-schema"],
            priority=8,
            max_tokens=20000,
        ),
        _task(
            "ui-implementation",
            "frontend-developer",
            "Implement frontend UI components",
            "Implement the frontend UI components based on the architecture.\n\n"
            + _requirements("Requirements", [
                "Reusable components", "Responsive design", "Accessibility (WCAG 2.1)",
                "Performance optimization", "Clean component API",
            ]),
            dependencies=["frontend-architecture"],
            priority=8,
            max_tokens=20000,
        ),
        _task(
            "integration",
            "test-automator",
            "Create integration tests for frontend-backend communication",
            "Create comprehensive integration tests for the full-stack application.\n\n"
            + _requirements("Requirements", [
                "API integration tests", "End-to-end user flows", "Error scenario testing",
                "Performance benchmarks", "Test data generation",
            ]),
            dependencies=["api-implementation", "ui-implementation"],
            priority=7,
            max_tokens=16000,
        ),
    ]


def _security_tasks(params: dict[str, Any]) -> list[AgentTask]:
    codebase_path = params.get("codebasePath", ".")
    scope = params.get("scope", "full")
    return [
        _task(
            "security-overview",
            "security-auditor",
            "Perform initial security assessment and threat modeling",
            f"Perform a comprehensive security assessment of the codebase at: {codebase_path}\nScope: {scope}\n\n"
            + _requirements("Requirements", [
                "Threat modeling", "Attack surface analysis", "Security architecture review",
                "Compliance check (OWASP Top 10)", "Risk prioritization",
            ]),
            priority=10,
            max_tokens=16000,
        ),
        _task(
            "frontend-security",
            "frontend-security-coder",
            "Audit frontend security (XSS, CSRF, CSP)",
            "Audit frontend code for security vulnerabilities.\n\n"
            + _requirements("Focus areas", [
                "XSS prevention", "CSRF protection", "Content Security Policy", "Input sanitization",
                "Secure storage (localStorage, cookies)", "Third-party script security",
            ]),
            dependencies=["security-overview"],
            priority=9,
            max_tokens=12000,
        ),
        _task(
            "backend-security",
            "backend-security-coder",
            "Audit backend security (SQL injection, auth, encryption)",
            "Audit backend code for security vulnerabilities.\n\n"
            + _requirements("Focus areas", [
                "SQL injection prevention", "Authentication/authorization", "JWT security",
                "Password hashing", "API rate limiting", "Encryption at rest and in transit",
                "Secrets management",
            ]),
            dependencies=["security-overview"],
            priority=9,
            max_tokens=12000,
        ),
        _task(
            "dependency-security",
            "security-auditor",
            "Audit third-party dependencies for vulnerabilities",
            "Audit all third-party dependencies for known vulnerabilities.\n\n"
            + _requirements("Requirements", [
                "CVE database check", "License compliance", "Outdated package detection",
                "Supply chain risk assessment", "Remediation recommendations",
            ]),
            dependencies=["security-overview"],
            priority=8,
            max_tokens=10000,
        ),
        _task(
            "infrastructure-security",
            "cloud-architect",
            "Review infrastructure and deployment security",
            "Review infrastructure configuration and deployment security.\n\n"
            + _requirements("Focus areas", [
                "Environment variable security", "Network security (firewalls, VPCs)",
                "Container security", "CI/CD pipeline security", "Monitoring and alerting",
                "Backup and disaster recovery",
            ]),
            dependencies=["security-overview"],
            priority=8,
            max_tokens=10000,
        ),
        _task(
            "security-report",
            "security-auditor",
            "Compile comprehensive security audit report",
            "Compile a comprehensive security audit report based on all findings.\n\n"
            + _requirements("Requirements", [
                "Executive summary", "Detailed findings by category", "Risk assessment matrix",
                "Remediation priorities", "Implementation timeline", "Compliance status",
            ]),
            dependencies=["frontend-security", "backend-security", "dependency-security", "infrastructure-security"],
            priority=7,
            max_tokens=16000,
        ),
    ]


def _testing_tasks(params: dict[str, Any]) -> list[AgentTask]:
    test_scope = params.get("testScope", "full")
    framework = params.get("framework", "jest")
    coverage = params.get("coverage", 80)
    return [
        _task(
            "test-strategy",
            "test-automator",
            "Define comprehensive test strategy",
            "Define a comprehensive test strategy for the application.\n"
            f"Scope: {test_scope}\nFramework: {framework}\nTarget coverage: {coverage}%\n\n"
            + _requirements("Requirements", [
                "Test pyramid approach", "Testing levels (unit, integration, e2e)",
                "Test data strategy", "CI/CD integration", "Coverage goals",
            ]),
            priority=10,
            max_tokens=12000,
        ),
        _task(
            "unit-tests-backend",
            "test-automator",
            "Create backend unit tests",
            "Create comprehensive unit tests for backend code.\n\n"
            + _requirements("Requirements", [
                "Business logic coverage", "Edge case testing", "Mocking strategy",
                "Test fixtures", "Assertion patterns",
            ]),
            dependencies=["test-strategy"],
            priority=9,
            max_tokens=16000,
        ),
        _task(
            "unit-tests-frontend",
            "test-automator",
            "Create frontend unit tests",
            "Create comprehensive unit tests for frontend components.\n\n"
            + _requirements("Requirements", [
                "Component testing", "Hook testing", "Utility function testing",
                "Snapshot testing", "Accessibility testing",
            ]),
            dependencies=["test-strategy"],
            priority=9,
            max_tokens=16000,
        ),
        _task(
            "integration-tests",
            "test-automator",
            "Create integration tests",
            "Create integration tests for API and database interactions.\n\n"
            + _requirements("Requirements", [
                "API endpoint testing", "Database integration", "Authentication flows",
                "Error handling", "Performance assertions",
            ]),
            dependencies=["test-strategy", "unit-tests-backend"],
            priority=8,
            max_tokens=16000,
        ),
        _task(
            "e2e-tests",
            "test-automator",
            "Create end-to-end tests",
            "Create end-to-end tests for critical user journeys.\n\n"
            + _requirements("Requirements", [
                "User flow testing", "Cross-browser testing", "Mobile responsiveness",
                "Performance testing", "Accessibility validation",
            ]),
            dependencies=["test-strategy", "unit-tests-frontend"],
            priority=8,
            max_tokens=16000,
        ),
        _task(
            "test-report",
            "test-automator",
            "Generate test coverage report",
            "Generate a comprehensive test coverage and quality report.\n\n"
            + _requirements("Requirements", [
                "Coverage metrics by module", "Test quality assessment", "Missing test identification",
                "Performance benchmarks", "Recommendations for improvement",
            ]),
            dependencies=["unit-tests-backend", "unit-tests-frontend", "integration-tests", "e2e-tests"],
            priority=7,
            max_tokens=12000,
        ),
    ]


def _performance_tasks(params: dict[str, Any]) -> list[AgentTask]:
    target = json.dumps(params.get("targetMetrics", {}))
    baseline = json.dumps(params.get("currentBaseline", {}))
    return [
        _task(
            "performance-baseline",
            "performance-engineer",
            "Establish performance baseline and targets",
            "Establish performance baseline and optimization targets.\n"
            f"Current metrics: {baseline}\nTarget metrics: {target}\n\n"
            + _requirements("Requirements", [
                "Performance profiling strategy", "Key metrics identification", "Bottleneck hypothesis",
                "Optimization priorities", "Success criteria",
            ]),
            priority=10,
            max_tokens=12000,
        ),
        _task(
            "frontend-performance",
            "performance-engineer",
            "Optimize frontend performance",
            "Analyze and optimize frontend performance.\n\n"
            + _requirements("Focus areas", [
                "Bundle size reduction", "Code splitting", "Lazy loading", "Image optimization",
                "Caching strategy", "Web Vitals optimization (LCP, FID, CLS)",
            ]),
            dependencies=["performance-baseline"],
            priority=9,
            max_tokens=16000,
        ),
        _task(
            "backend-performance",
            "performance-engineer",
            "Optimize backend performance",
            "Analyze and optimize backend performance.\n\n"
            + _requirements("Focus areas", [
                "API response times", "Resource utilization", "Concurrency handling",
                "Caching implementation", "Connection pooling", "Memory management",
            ]),
            dependencies=["performance-baseline"],
            priority=9,
            max_tokens=16000,
        ),
        _task(
            "database-optimization",
            "database-optimizer",
            "Optimize database queries and schema",
            "Optimize database performance.\n\n"
            + _requirements("Focus areas", [
                "Query optimization", "Index strategy", "N+1 query elimination",
                "Connection pooling", "Denormalization opportunities", "Caching layer",
            ]),
            dependencies=["performance-baseline"],
            priority=9,
            max_tokens=16000,
        ),
        _task(
            "load-testing",
            "test-automator",
            "Perform load testing and stress testing",
            "Create and execute load testing scenarios.\n\n"
            + _requirements("Requirements", [
                "Load test scenarios", "Stress testing", "Spike testing",
                "Endurance testing", "Performance benchmarks",
            ]),
            dependencies=["frontend-performance", "backend-performance", "database-optimization"],
            priority=8,
            max_tokens=12000,
        ),
        _task(
            "performance-report",
            "performance-engineer",
            "Compile performance optimization report",
            "Compile comprehensive performance optimization report.\n\n"
            + _requirements("Requirements", [
                "Before/after metrics", "Optimization impact analysis", "Remaining bottlenecks",
                "Scalability assessment", "Future recommendations",
            ]),
            dependencies=["load-testing"],
            priority=7,
            max_tokens=12000,
        ),
    ]


def _code_review_tasks(params: dict[str, Any]) -> list[AgentTask]:
    pr_url = params.get("prUrl", "")
    changed_files = ", ".join(params.get("changedFiles", []))
    depth = params.get("reviewDepth", "thorough")
    return [
        _task(
            "quality-review",
            "code-reviewer",
            "Review code quality and best practices",
            f"Review code quality for PR: {pr_url}\nChanged files: {changed_files}\nReview depth: {depth}\n\n"
            + _requirements("Focus areas", [
                "Code clarity and maintainability", "Design patterns", "SOLID principles",
                "Code duplication", "Naming conventions",
            ]),
            priority=10,
            max_tokens=16000,
        ),
        _task(
            "security-review",
            "security-auditor",
            "Review security implications",
            "Review security implications of code changes.\n\n"
            + _requirements("Focus areas", [
                "Vulnerability introduction", "Authentication/authorization changes", "Input validation",
                "Data exposure risks", "Secure coding practices",
            ]),
            dependencies=["quality-review"],
            priority=9,
            max_tokens=12000,
        ),
        _task(
            "performance-review",
            "performance-engineer",
            "Review performance impact",
            "Review performance impact of code changes.\n\n"
            + _requirements("Focus areas", [
                "Algorithmic complexity", "Database query efficiency", "Memory usage",
                "Network requests", "Caching opportunities",
            ]),
            dependencies=["quality-review"],
            priority=9,
            max_tokens=12000,
        ),
        _task(
            "test-review",
            "test-automator",
            "Review test coverage and quality",
            "Review test coverage for code changes.\n\n"
            + _requirements("Focus areas", [
                "Test completeness", "Edge case coverage", "Test quality",
                "Integration test needs", "Test maintainability",
            ]),
            dependencies=["quality-review"],
            priority=8,
            max_tokens=12000,
        ),
        _task(
            "documentation-review",
            "docs-architect",
            "Review documentation completeness",
            "Review documentation for code changes.\n\n"
            + _requirements("Focus areas", [
                "Code comments", "API documentation", "README updates",
                "Migration guides", "Breaking change documentation",
            ]),
            dependencies=["quality-review"],
            priority=7,
            max_tokens=10000,
        ),
        _task(
            "review-summary",
            "code-reviewer",
            "Compile comprehensive review summary",
            "Compile comprehensive code review summary.\n\n"
            + _requirements("Requirements", [
                "Overall assessment", "Critical issues", "Suggestions for improvement",
                "Approval recommendation", "Follow-up items",
            ]),
            dependencies=["security-review", "performance-review", "test-review", "documentation-review"],
            priority=6,
            max_tokens=12000,
        ),
    ]


def _devops_tasks(params: dict[str, Any]) -> list[AgentTask]:
    platform = params.get("platform", "aws")
    cicd = params.get("cicd", "github-actions")
    monitoring = params.get("monitoring", True)
    return [
        _task(
            "infrastructure-design",
            "cloud-architect",
            "Design cloud infrastructure",
            f"Design cloud infrastructure for deployment.\nPlatform: {platform}\n\n"
            + _requirements("Requirements", [
                "Architecture diagram", "Resource specifications", "Networking setup",
                "Security groups", "Scaling strategy", "Cost optimization",
            ]),
            priority=10,
            max_tokens=16000,
        ),
        _task(
            "cicd-setup",
            "deployment-engineer",
            "Setup CI/CD pipeline",
            f"Setup CI/CD pipeline using {cicd}.\n\n"
            + _requirements("Requirements", [
                "Build automation", "Test integration", "Deployment stages",
                "Environment management", "Rollback strategy", "Security scanning",
            ]),
            dependencies=["infrastructure-design"],
            priority=9,
            max_tokens=16000,
        ),
        _task(
            "monitoring-setup",
            "devops-troubleshooter",
            "Setup monitoring and alerting",
            "Setup comprehensive monitoring and alerting.\n\n"
            + _requirements("Requirements", [
                "Application monitoring", "Infrastructure monitoring", "Log aggregation",
                "Alert configuration", "Dashboard creation", "On-call setup",
            ]),
            dependencies=["infrastructure-design"],
            priority=9,
            max_tokens=12000,
            context={"enabled": monitoring},
        ),
        _task(
            "database-migration",
            "database-optimizer",
            "Setup database migration strategy",
            "Setup database migration and backup strategy.\n\n"
            + _requirements("Requirements", [
                "Migration scripts", "Backup automation", "Disaster recovery",
                "Data seeding", "Version control", "Rollback procedures",
            ]),
            dependencies=["infrastructure-design"],
            priority=8,
            max_tokens=12000,
        ),
        _task(
            "security-hardening",
            "security-auditor",
            "Implement security hardening",
            "Implement security hardening for production.\n\n"
            + _requirements("Requirements", [
                "Secrets management", "Network security", "SSL/TLS configuration",
                "WAF setup", "DDoS protection", "Compliance checks",
            ]),
            dependencies=["infrastructure-design"],
            priority=8,
            max_tokens=12000,
        ),
        _task(
            "deployment-runbook",
            "deployment-engineer",
            "Create deployment runbook",
            "Create comprehensive deployment runbook.\n\n"
            + _requirements("Requirements", [
                "Deployment steps", "Verification checklist", "Rollback procedures",
                "Troubleshooting guide", "Contact information", "Post-deployment tasks",
            ]),
            dependencies=["cicd-setup", "monitoring-setup", "database-migration", "security-hardening"],
            priority=7,
            max_tokens=12000,
        ),
    ]


WORKFLOWS: dict[str, WorkflowTemplate] = {
    template.id: template
    for template in (
        WorkflowTemplate(
            "fullstack-dev",
            "Full-Stack Development",
            "Comprehensive full-stack application development with frontend, backend, and database",
            "development",
            ["fullstack", "frontend", "backend", "database"],
            300,
            "complex",
            _fullstack_tasks,
        ),
        WorkflowTemplate(
            "security-audit",
            "Security Audit",
            "Comprehensive security audit with OWASP Top 10 checks and vulnerability scanning",
            "security",
            ["security", "audit", "owasp", "vulnerability"],
            240,
            "complex",
            _security_tasks,
        ),
        WorkflowTemplate(
            "testing-suite",
            "Comprehensive Testing",
            "Full testing suite with unit, integration, and end-to-end tests",
            "testing",
            ["testing", "tdd", "unit", "integration", "e2e"],
            180,
            "moderate",
            _testing_tasks,
        ),
        WorkflowTemplate(
            "performance-optimization",
            "Performance Optimization",
            "Comprehensive performance analysis and optimization for frontend, backend, and database",
            "performance",
            ["performance", "optimization", "profiling", "scaling"],
            200,
            "complex",
            _performance_tasks,
        ),
        WorkflowTemplate(
            "code-review",
            "Code Review",
            "Comprehensive code review covering quality, security, performance, and best practices",
            "quality",
            ["code-review", "quality", "best-practices"],
            150,
            "moderate",
            _code_review_tasks,
        ),
        WorkflowTemplate(
            "devops-setup",
            "DevOps Setup",
            "Complete DevOps setup with CI/CD, monitoring, and deployment automation",
            "devops",
            ["devops", "ci-cd", "deployment", "monitoring"],
            240,
            "complex",
            _devops_tasks,
        ),
    )
}


def get_workflow(workflow_id: str) -> WorkflowTemplate | None:
    return WORKFLOWS.get(workflow_id)


def list_workflows(category: str | None = None, tags: list[str] | None = None) -> list[WorkflowTemplate]:
    workflows = list(WORKFLOWS.values())
    if category:
        return [w for w in workflows if w.category == category]
    if tags:
        return [w for w in workflows if any(tag in w.tags for tag in tags)]
    return workflows
