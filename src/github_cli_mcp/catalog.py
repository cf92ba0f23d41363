"""Tool catalog: the allow-listed operations (public contract surface).

Built once at import time and never mutated. Listing returns copies so callers
cannot alter the registered schemas.
"""

from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from . import copilot, orchestrator
from .config import OPERATING_SYSTEMS, SHELLS
from .runtime import Runtime, ToolOutput

Handler = Callable[[Runtime, dict[str, Any]], Awaitable[ToolOutput]]

LICENSES = ["MIT", "Apache-2.0", "GPL-3.0", "BSD-3-Clause"]


@dataclass(frozen=True, slots=True)
class OperationDescriptor:
    """Name, description, input schema and handler of one tool."""

    name: str
    description: str
    input_schema: dict[str, Any]
    handler: Handler

    def listing(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": copy.deepcopy(self.input_schema),
        }


def _owner_repo() -> dict[str, Any]:
    return {
        "owner": {"type": "string", "minLength": 1, "description": "Repository owner (username or organization)"},
        "repo": {"type": "string", "minLength": 1, "description": "Repository name"},
    }


CATALOG: tuple[OperationDescriptor, ...] = (
    OperationDescriptor(
        name="setup_repository",
        description=(
            "Create and set up a new GitHub repository with proper structure, README, license, "
            "and configuration files"
        ),
        input_schema={
            "type": "object",
            "required": ["name", "description"],
            "properties": {
                "name": {"type": "string", "minLength": 1, "description": "Repository name"},
                "description": {"type": "string", "description": "Repository description"},
                "private": {"type": "boolean", "default": False, "description": "Whether the repository should be private"},
                "license": {"type": "string", "enum": LICENSES, "default": "MIT"},
                "language": {"type": "string", "default": "javascript", "description": "Primary programming language"},
                "includeReadme": {"type": "boolean", "default": True},
                "includeLicense": {"type": "boolean", "default": True},
                "includeGitignore": {"type": "boolean", "default": True},
                "setupCI": {"type": "boolean", "default": False, "description": "Set up GitHub Actions CI/CD"},
            },
            "additionalProperties": False,
        },
        handler=orchestrator.setup_repository,
    ),
    OperationDescriptor(
        name="review_pull_request",
        description=(
            "Conduct a review of a GitHub pull request, analyzing code quality, security, "
            "performance, and best practices, and post it as a review comment"
        ),
        input_schema={
            "type": "object",
            "required": ["owner", "repo", "pullNumber"],
            "properties": {
                **_owner_repo(),
                "pullNumber": {"type": "integer", "minimum": 1, "description": "Pull request number"},
                "reviewType": {
                    "type": "string",
                    "enum": ["code-quality", "security", "performance", "comprehensive"],
                    "default": "comprehensive",
                    "description": "Type of review to conduct",
                },
            },
            "additionalProperties": False,
        },
        handler=orchestrator.review_pull_request,
    ),
    OperationDescriptor(
        name="create_workflow",
        description="Create a GitHub Actions workflow file for CI/CD, testing, deployment, or other automation tasks",
        input_schema={
            "type": "object",
            "required": ["owner", "repo", "workflowName", "workflowType"],
            "properties": {
                **_owner_repo(),
                "workflowName": {"type": "string", "minLength": 1, "description": "Name of the workflow"},
                "workflowType": {
                    "type": "string",
                    "enum": ["ci-cd", "testing", "deployment", "security", "custom"],
                    "description": "Type of workflow to create",
                },
                "language": {"type": "string", "default": "javascript", "description": "Programming language"},
                "triggers": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "default": ["push", "pull_request"],
                    "description": "Workflow triggers",
                },
                "environment": {"type": "string", "description": "Target environment (staging, production, etc.)"},
            },
            "additionalProperties": False,
        },
        handler=orchestrator.create_workflow,
    ),
    OperationDescriptor(
        name="setup_issue_triage",
        description="Set up an issue triage system with labels, issue templates, and GitHub Actions automation",
        input_schema={
            "type": "object",
            "required": ["owner", "repo"],
            "properties": {
                **_owner_repo(),
                "setupAutomation": {"type": "boolean", "default": True, "description": "Set up GitHub Actions for automation"},
                "labelCategories": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "default": ["bug", "feature", "documentation", "question"],
                    "description": "Categories of labels to create",
                },
            },
            "additionalProperties": False,
        },
        handler=orchestrator.setup_issue_triage,
    ),
    OperationDescriptor(
        name="analyze_repository",
        description=(
            "Analyze a GitHub repository for structure, code quality, documentation, and security, "
            "and provide improvement recommendations"
        ),
        input_schema={
            "type": "object",
            "required": ["owner", "repo"],
            "properties": {
                **_owner_repo(),
                "analysisType": {
                    "type": "string",
                    "enum": ["structure", "code-quality", "security", "documentation", "comprehensive"],
                    "default": "comprehensive",
                    "description": "Type of analysis to perform",
                },
            },
            "additionalProperties": False,
        },
        handler=orchestrator.analyze_repository,
    ),
    OperationDescriptor(
        name="copilot_explain",
        description="Explain what a command does using GitHub Copilot CLI",
        input_schema={
            "type": "object",
            "required": ["command"],
            "properties": {
                "command": {
                    "type": "string",
                    "minLength": 1,
                    "description": 'The command to explain (e.g., "sudo apt-get", "docker run -d nginx")',
                },
            },
            "additionalProperties": False,
        },
        handler=copilot.copilot_explain,
    ),
    OperationDescriptor(
        name="copilot_suggest",
        description="Get command suggestions for a task using GitHub Copilot CLI, optionally with repository context",
        input_schema={
            "type": "object",
            "required": ["task"],
            "properties": {
                "task": {
                    "type": "string",
                    "minLength": 1,
                    "description": 'Description of what you want to accomplish (e.g., "Set up database migration")',
                },
                "shell": {"type": "string", "enum": SHELLS, "description": "Target shell"},
                "os": {"type": "string", "enum": OPERATING_SYSTEMS, "description": "Target operating system"},
                "context": {"type": "string", "description": "Additional context about your environment or requirements"},
                "repositoryContext": {
                    "type": "boolean",
                    "default": False,
                    "description": "Include the configured default repository in the prompt",
                },
            },
            "additionalProperties": False,
        },
        handler=copilot.copilot_suggest,
    ),
    OperationDescriptor(
        name="copilot_check_setup",
        description="Check whether GitHub CLI and the Copilot extension are installed and authenticated",
        input_schema={"type": "object", "properties": {}, "additionalProperties": False},
        handler=copilot.copilot_check_setup,
    ),
)


def index_catalog(catalog: tuple[OperationDescriptor, ...]) -> dict[str, OperationDescriptor]:
    index: dict[str, OperationDescriptor] = {}
    for descriptor in catalog:
        if descriptor.name in index:
            raise ValueError(f"Duplicate operation name: {descriptor.name}")
        index[descriptor.name] = descriptor
    return index


CATALOG_BY_NAME: dict[str, OperationDescriptor] = index_catalog(CATALOG)


def list_operations() -> list[dict[str, Any]]:
    """Return name, description and input schema for every operation, in catalog order."""
    return [d.listing() for d in CATALOG]
