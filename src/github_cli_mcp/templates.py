"""File content for repository setup, workflows, and issue triage."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone

_LICENSE_NAMES = {
    "MIT": "MIT License",
    "Apache-2.0": "Apache License 2.0",
    "GPL-3.0": "GNU General Public License v3.0",
    "BSD-3-Clause": 'BSD 3-Clause "New" or "Revised" License',
}

_MIT_TEXT = """MIT License

Copyright (c) {year} {holder}

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

_NOTICE_TEXT = """Copyright (c) {year} {holder}

This project is licensed under the {name}.
The full license text is available at https://spdx.org/licenses/{spdx}.html
"""

_GITIGNORES = {
    "javascript": ["node_modules/", "dist/", "coverage/", ".env", "npm-debug.log*"],
    "typescript": ["node_modules/", "dist/", "coverage/", "*.tsbuildinfo", ".env"],
    "python": ["__pycache__/", "*.py[cod]", ".venv/", "dist/", "build/", "*.egg-info/", ".pytest_cache/", ".env"],
    "go": ["bin/", "*.exe", "*.test", "*.out", "vendor/"],
    "rust": ["target/", "Cargo.lock"],
    "java": ["target/", "build/", "*.class", ".gradle/", "*.jar"],
    "csharp": ["bin/", "obj/", "*.user", ".vs/"],
}

_COMMON_IGNORES = [".DS_Store", "Thumbs.db", ".idea/", ".vscode/", "*.log"]

# language -> (setup action, setup inputs, install, test, build)
_TOOLCHAINS: dict[str, tuple[str, dict[str, str], str, str, str]] = {
    "javascript": ("actions/setup-node@v4", {"node-version": "20.x"}, "npm ci", "npm test", "npm run build --if-present"),
    "typescript": ("actions/setup-node@v4", {"node-version": "20.x"}, "npm ci", "npm test", "npm run build --if-present"),
    "python": (
        "actions/setup-python@v5",
        {"python-version": "3.12"},
        "pip install -e .[test]",
        "pytest",
        "python -m build",
    ),
    "go": ("actions/setup-go@v5", {"go-version": "stable"}, "go mod download", "go test ./...", "go build ./..."),
    "rust": ("dtolnay/rust-toolchain@stable", {}, "cargo fetch", "cargo test", "cargo build --release"),
    "java": ("actions/setup-java@v4", {"distribution": "temurin", "java-version": "21"}, "mvn -B -q dependency:resolve", "mvn -B test", "mvn -B package"),
}


def license_name(spdx: str) -> str:
    return _LICENSE_NAMES.get(spdx, spdx)


def render_readme(*, name: str, description: str, language: str, license_id: str | None) -> str:
    lines = [f"# {name}", "", description, "", "## Getting started", ""]
    toolchain = _TOOLCHAINS.get(language.lower())
    if toolchain is not None:
        lines += ["```bash", toolchain[2], toolchain[3], "```", ""]
    else:
        lines += [f"This project is written in {language}.", ""]
    if license_id:
        lines += ["## License", "", f"Distributed under the {license_name(license_id)}. See `LICENSE` for details.", ""]
    return "\n".join(lines)


def render_license(*, spdx: str, holder: str, year: int | None = None) -> str:
    year = year or datetime.now(timezone.utc).year
    if spdx == "MIT":
        return _MIT_TEXT.format(year=year, holder=holder)
    return _NOTICE_TEXT.format(year=year, holder=holder, name=license_name(spdx), spdx=spdx)


def render_gitignore(language: str) -> str:
    entries = _GITIGNORES.get(language.lower(), [])
    return "\n".join([*entries, *_COMMON_IGNORES]) + "\n"


def workflow_filename(workflow_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", workflow_name.lower()).strip("-")
    return f"{slug or 'workflow'}.yml"


_EVENT_NAME_RE = re.compile(r"[A-Za-z_]+")


def _quote(value: str) -> str:
    # A JSON string is both a valid YAML scalar and a valid JavaScript literal.
    return json.dumps(value)


def _trigger_block(triggers: list[str]) -> list[str]:
    lines = ["on:"]
    for trigger in triggers:
        if trigger in ("push", "pull_request"):
            lines += [f"  {trigger}:", "    branches: [ main ]"]
        elif trigger == "schedule":
            lines += ["  schedule:", "    - cron: '0 6 * * 1'"]
        elif _EVENT_NAME_RE.fullmatch(trigger):
            lines.append(f"  {trigger}:")
        else:
            lines.append(f"  {_quote(trigger)}:")
    return lines


def _setup_steps(language: str) -> list[str]:
    lines = ["      - uses: actions/checkout@v4"]
    toolchain = _TOOLCHAINS.get(language.lower())
    if toolchain is None:
        return lines
    action, inputs, install, _, _ = toolchain
    lines.append(f"      - uses: {action}")
    if inputs:
        lines.append("        with:")
        lines += [f"          {k}: '{v}'" for k, v in inputs.items()]
    lines.append(f"      - run: {install}")
    return lines


def render_workflow(
    *,
    workflow_name: str,
    workflow_type: str,
    language: str,
    triggers: list[str],
    environment: str | None = None,
) -> str:
    toolchain = _TOOLCHAINS.get(language.lower())
    test_cmd = toolchain[3] if toolchain else "echo 'add test command'"
    build_cmd = toolchain[4] if toolchain else "echo 'add build command'"

    lines = [f"name: {_quote(workflow_name)}", "", *_trigger_block(triggers or ["push"]), "", "jobs:"]
    job = workflow_type.replace("-", "_")
    lines += [f"  {job}:", "    runs-on: ubuntu-latest"]
    if environment:
        lines.append(f"    environment: {_quote(environment)}")
    if workflow_type == "security":
        lines += ["    permissions:", "      security-events: write", "      contents: read"]
    lines += ["    steps:", *_setup_steps(language)]

    if workflow_type == "testing":
        lines.append(f"      - run: {test_cmd}")
    elif workflow_type == "ci-cd":
        lines += [f"      - run: {test_cmd}", f"      - run: {build_cmd}"]
    elif workflow_type == "deployment":
        lines += [f"      - run: {build_cmd}", "      - run: echo 'deploy step goes here'"]
    elif workflow_type == "security":
        lines += [
            "      - uses: github/codeql-action/init@v3",
            "      - uses: github/codeql-action/analyze@v3",
        ]
    else:
        lines.append("      - run: echo 'custom workflow'")
    return "\n".join(lines) + "\n"


def render_issue_template(kind: str) -> str:
    if kind == "bug":
        return (
            "---\nname: Bug report\nabout: Report something that is not working\nlabels: bug\n---\n\n"
            "## Describe the bug\n\n## Steps to reproduce\n\n## Expected behavior\n\n## Environment\n"
        )
    return (
        "---\nname: Feature request\nabout: Suggest an idea\nlabels: feature\n---\n\n"
        "## Problem\n\n## Proposed solution\n\n## Alternatives considered\n"
    )


def render_triage_workflow(label_categories: list[str]) -> str:
    labels = json.dumps(list(label_categories))
    return "\n".join(
        [
            "name: Issue triage",
            "",
            "on:",
            "  issues:",
            "    types: [opened]",
            "",
            "permissions:",
            "  issues: write",
            "",
            "jobs:",
            "  triage:",
            "    runs-on: ubuntu-latest",
            "    steps:",
            "      - uses: actions/github-script@v7",
            "        with:",
            "          script: |",
            f"            const categories = {labels};",
            "            const text = `${context.payload.issue.title} ${context.payload.issue.body || ''}`.toLowerCase();",
            "            const labels = categories.filter((c) => text.includes(c));",
            "            if (labels.length === 0) labels.push('needs-triage');",
            "            await github.rest.issues.addLabels({",
            "              owner: context.repo.owner,",
            "              repo: context.repo.repo,",
            "              issue_number: context.payload.issue.number,",
            "              labels,",
            "            });",
        ]
    ) + "\n"


LABEL_COLORS = {
    "bug": "d73a4a",
    "feature": "a2eeef",
    "enhancement": "a2eeef",
    "documentation": "0075ca",
    "question": "d876e3",
    "security": "b60205",
    "performance": "fbca04",
}


def label_color(category: str) -> str:
    return LABEL_COLORS.get(category.lower(), "ededed")
