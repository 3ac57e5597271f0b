from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_INTENT = "chat"


@dataclass(frozen=True, slots=True)
class IntentCategory:
    key: str
    name: str
    description: str
    keywords: tuple[str, ...]
    priority: int

    def to_card(self) -> dict[str, Any]:
        return {"id": self.key, "name": self.name, "description": self.description}


@dataclass(frozen=True, slots=True)
class IntentMatch:
    key: str
    name: str
    description: str
    score: int
    confidence: float
    scores: dict[str, int]

    def to_payload(self) -> dict[str, Any]:
        return {
            "intent": self.key,
            "name": self.name,
            "description": self.description,
            "score": self.score,
            "confidence": self.confidence,
            "scores": dict(self.scores),
        }


# Order matters: on equal scores the earlier category wins.
INTENT_TABLE: tuple[IntentCategory, ...] = (
    IntentCategory(
        "chat",
        "General Chat",
        "General conversation and questions",
        ("hello", "hi", "how are you", "what is", "explain", "tell me", "describe", "chat"),
        1,
    ),
    IntentCategory(
        "code",
        "Code Related",
        "Programming, coding, development questions",
        (
            "code", "function", "program", "debug", "error", "syntax", "python",
            "javascript", "java", "algorithm", "api", "database",
        ),
        3,
    ),
    IntentCategory(
        "document_search",
        "Document Search",
        "Search in uploaded documents or knowledge base",
        (
            "search", "find", "document", "file", "knowledge", "lookup", "retrieve",
            "where is", "show me",
        ),
        2,
    ),
    IntentCategory(
        "analysis",
        "Data Analysis",
        "Data analysis, statistics, insights",
        (
            "analyze", "analysis", "statistics", "data", "chart", "graph", "trend",
            "compare", "evaluate",
        ),
        2,
    ),
    IntentCategory(
        "github",
        "GitHub Repository",
        "GitHub repository related queries",
        ("github", "repository", "repo", "commit", "pull request", "issue", "branch", "fork"),
        4,
    ),
    IntentCategory(
        "devops",
        "DevOps Operations",
        "CI/CD, deployment, containerization, infrastructure operations",
        (
            "deploy", "deployment", "docker", "container", "kubernetes", "k8s", "ci/cd",
            "pipeline", "build", "jenkins", "github actions", "gitlab", "terraform",
            "ansible", "infrastructure",
        ),
        3,
    ),
    IntentCategory(
        "security",
        "Security Operations",
        "Security vulnerabilities, compliance, access control, authentication",
        (
            "security", "vulnerability", "cve", "authentication", "authorization", "oauth",
            "jwt", "ssl", "tls", "encryption", "penetration", "audit", "compliance", "gdpr",
            "hipaa", "firewall", "intrusion",
        ),
        4,
    ),
    IntentCategory(
        "monitoring",
        "Monitoring & Observability",
        "System monitoring, logs, metrics, alerting, performance tracking",
        (
            "monitor", "monitoring", "log", "logs", "metric", "metrics", "alert", "alerting",
            "prometheus", "grafana", "elk", "splunk", "apm", "trace", "observability",
            "dashboard",
        ),
        3,
    ),
    IntentCategory(
        "incident",
        "Incident Response",
        "Troubleshooting, debugging, incident management, root cause analysis",
        (
            "incident", "outage", "downtime", "troubleshoot", "debug", "fix", "broken",
            "not working", "crash", "failure", "root cause", "postmortem", "500 error",
            "404 error", "timeout",
        ),
        5,
    ),
    IntentCategory(
        "database",
        "Database Operations",
        "Database queries, optimization, backup, migration, schema design",
        (
            "database", "sql", "query", "postgres", "postgresql", "mysql", "mongodb", "redis",
            "schema", "migration", "backup", "restore", "index", "optimize", "orm", "prisma",
            "sequelize",
        ),
        3,
    ),
    IntentCategory(
        "documentation",
        "Documentation",
        "Technical documentation, API docs, runbooks, writing guides",
        (
            "documentation", "document", "readme", "wiki", "guide", "tutorial", "how-to",
            "manual", "api doc", "swagger", "openapi", "runbook", "playbook",
        ),
        2,
    ),
    IntentCategory(
        "testing",
        "Testing & QA",
        "Unit testing, integration testing, test automation, quality assurance",
        (
            "test", "testing", "jest", "mocha", "pytest", "junit", "selenium", "cypress",
            "coverage", "mock", "stub", "qa", "quality", "e2e", "integration test", "unit test",
        ),
        3,
    ),
    IntentCategory(
        "performance",
        "Performance Optimization",
        "Performance tuning, profiling, caching, scalability improvements",
        (
            "performance", "optimize", "optimization", "slow", "latency", "throughput",
            "cache", "caching", "scale", "scalability", "profile", "profiling", "bottleneck",
            "memory leak",
        ),
        3,
    ),
    IntentCategory(
        "project_management",
        "Project Management",
        "Sprint planning, task estimation, agile methodologies, retrospectives",
        (
            "sprint", "scrum", "agile", "kanban", "backlog", "story", "epic", "retrospective",
            "standup", "planning", "estimation", "velocity", "jira", "ticket",
        ),
        2,
    ),
    IntentCategory(
        "code_review",
        "Code Review",
        "Code quality, best practices, refactoring, design patterns",
        (
            "code review", "review", "refactor", "refactoring", "clean code", "best practice",
            "design pattern", "solid", "dry", "code smell", "technical debt", "lint", "linting",
        ),
        3,
    ),
    IntentCategory(
        "system_admin",
        "System Administration",
        "User management, server configuration, backups, system maintenance",
        (
            "admin", "administrator", "user management", "permission", "role", "server",
            "nginx", "apache", "systemd", "cron", "backup", "maintenance", "configuration",
            "setup",
        ),
        3,
    ),
    IntentCategory(
        "web_search",
        "Web Search",
        "Search the internet for current information",
        (
            "search", "google", "bing", "latest", "news", "current", "weather", "price",
            "stock", "who is", "what is", "when is", "find online", "look up",
        ),
        5,
    ),
    IntentCategory(
        "image_generation",
        "Image Generation",
        "Generate images from text description",
        (
            "generate image", "create image", "draw", "picture of", "image of", "photo of",
            "illustrate", "paint",
        ),
        5,
    ),
)

_BY_KEY = {category.key: category for category in INTENT_TABLE}


def classify_intent(text: object) -> IntentMatch:
    """Score every category by keyword hits weighted with its priority.

    Keywords match as plain substrings of the lowercased text. The highest
    score wins, the earlier category wins a tie, and no hits at all means
    general chat.
    """
    lower = text.lower() if isinstance(text, str) else ""

    scores: dict[str, int] = {}
    for category in INTENT_TABLE:
        hits = sum(1 for keyword in category.keywords if keyword in lower)
        scores[category.key] = hits * category.priority

    best_key = DEFAULT_INTENT
    best_score = 0
    for key, score in scores.items():
        if score > best_score:
            best_key, best_score = key, score

    category = _BY_KEY[best_key]
    confidence = min(best_score / 10, 1.0) if best_score > 0 else 0.5
    logger.debug("intent detected: intent=%s score=%d chars=%d", best_key, best_score, len(lower))

    return IntentMatch(
        key=category.key,
        name=category.name,
        description=category.description,
        score=best_score,
        confidence=confidence,
        scores=scores,
    )


def available_intents() -> list[dict[str, Any]]:
    return [category.to_card() for category in INTENT_TABLE]
