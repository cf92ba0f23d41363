"""GitHub automation tools.

`setup_repository` is the only create-then-decorate sequence: once the
repository exists, each optional file step is attempted independently and its
outcome recorded in a StepLedger; nothing is rolled back. Every other tool here
fails atomically: the first RemoteApiError aborts the whole call.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from . import templates
from .errors import SafeError, remote_api_error
from .runtime import Runtime, StepLedger, TextBlock, ToolOutput, gather_settled

logger = logging.getLogger(__name__)

SETUP_STEPS = ("create_repository", "add_readme", "add_license", "add_gitignore", "setup_ci")

_MAX_FINDINGS = 40

_FILES_PER_PAGE = 100
# The pull request files endpoint stops at 3000 entries.
_MAX_FILE_PAGES = 30


def _describe(err: SafeError) -> str:
    if err.hint:
        return f"{err.message}: {err.hint}"
    return err.message


def _unexpected(what: str) -> SafeError:
    return remote_api_error(status_code=None, upstream_message=f"Unexpected {what} response")


async def _upsert_file(runtime: Runtime, *, owner: str, repo: str, path: str, content: str, message: str) -> tuple[str, dict[str, Any]]:
    sha = await runtime.github.get_file_sha(owner=owner, repo=repo, path=path, budget=runtime.budget())
    data = await runtime.github.put_file(
        owner=owner,
        repo=repo,
        path=path,
        content=content,
        message=message,
        sha=sha,
        budget=runtime.budget(),
    )
    return ("updated" if sha else "created"), data


# ---------------------------------------------------------------------------
# setup_repository


async def setup_repository(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    name: str = arguments["name"]
    language: str = arguments["language"]
    license_id: str = arguments["license"]
    ledger = StepLedger(SETUP_STEPS)

    created = await runtime.github.request_json(
        method="POST",
        path="/user/repos",
        json_body={
            "name": name,
            "description": arguments["description"],
            "private": arguments["private"],
            "auto_init": False,
        },
        budget=runtime.budget(),
    )
    if not isinstance(created, dict):
        raise _unexpected("repository")
    owner_obj = created.get("owner")
    owner = owner_obj.get("login") if isinstance(owner_obj, dict) else None
    repo = created.get("name")
    if not isinstance(owner, str) or not isinstance(repo, str):
        raise _unexpected("repository")
    ledger.succeeded("create_repository")
    logger.info("Created repository %s/%s", owner, repo)

    planned: list[tuple[str, str, str]] = []
    if arguments["includeReadme"]:
        readme = templates.render_readme(
            name=repo,
            description=arguments["description"],
            language=language,
            license_id=license_id if arguments["includeLicense"] else None,
        )
        planned.append(("add_readme", "README.md", readme))
    if arguments["includeLicense"]:
        planned.append(("add_license", "LICENSE", templates.render_license(spdx=license_id, holder=owner)))
    if arguments["includeGitignore"]:
        planned.append(("add_gitignore", ".gitignore", templates.render_gitignore(language)))
    if arguments["setupCI"]:
        ci = templates.render_workflow(
            workflow_name="CI",
            workflow_type="ci-cd",
            language=language,
            triggers=["push", "pull_request"],
        )
        planned.append(("setup_ci", ".github/workflows/ci.yml", ci))

    # Contents API writes to the same branch conflict when issued in parallel.
    for step, path, content in planned:
        try:
            await runtime.github.put_file(
                owner=owner,
                repo=repo,
                path=path,
                content=content,
                message=f"Add {path}",
                budget=runtime.budget(),
            )
        except SafeError as err:
            logger.warning("Setup step %s failed for %s/%s: %s", step, owner, repo, err.message)
            ledger.failed(step, _describe(err))
        else:
            ledger.succeeded(step)

    visibility = "private" if arguments["private"] else "public"
    blocks = [
        TextBlock("repository", f"Created {visibility} repository {owner}/{repo}\n{created.get('html_url', '')}".rstrip()),
        TextBlock("steps", ledger.summary()),
    ]
    failures = ledger.failures
    if failures:
        names = ", ".join(r.name for r in failures)
        blocks.append(TextBlock("retry", f"The repository was kept. Retry the failed steps: {names}"))
    return ToolOutput(blocks=tuple(blocks), ledger=ledger)


# ---------------------------------------------------------------------------
# review_pull_request

_SECURITY_PATTERNS = [
    (re.compile(r"(password|passwd|secret|api[_-]?key)\s*[:=]\s*['\"][^'\"]+['\"]", re.I), "possible hard-coded credential"),
    (re.compile(r"\beval\s*\("), "use of eval()"),
    (re.compile(r"\bexec\s*\("), "use of exec()"),
    (re.compile(r"shell\s*=\s*True"), "subprocess invoked through a shell"),
    (re.compile(r"\.innerHTML\s*="), "direct innerHTML assignment"),
    (re.compile(r"\b(md5|sha1)\s*\(", re.I), "weak hash function"),
    (re.compile(r"verify\s*=\s*False"), "TLS verification disabled"),
]

_PERFORMANCE_PATTERNS = [
    (re.compile(r"SELECT\s+\*", re.I), "SELECT * query"),
    (re.compile(r"\btime\.sleep\s*\(|\bThread\.sleep\s*\("), "blocking sleep"),
    (re.compile(r"\b(readFileSync|writeFileSync|execSync)\b"), "synchronous I/O call"),
    (re.compile(r"for\s+\w+\s+in\s+range\s*\(\s*len\s*\("), "index-based loop over a sequence"),
]

_QUALITY_PATTERNS = [
    (re.compile(r"\b(TODO|FIXME|XXX)\b"), "unresolved TODO/FIXME"),
    (re.compile(r"\bconsole\.log\s*\("), "leftover console.log"),
    (re.compile(r"^\s*print\s*\("), "leftover print()"),
    (re.compile(r"except\s*:\s*$"), "bare except"),
]

_TEST_PATH_RE = re.compile(r"(^|/)(tests?|__tests__|spec)(/|$)|(_test|\.test|\.spec|_spec)\.\w+$|(^|/)test_[^/]+$")


def _added_lines(patch: object) -> list[str]:
    if not isinstance(patch, str):
        return []
    return [line[1:] for line in patch.splitlines() if line.startswith("+") and not line.startswith("+++")]


def _scan(files: list[dict[str, Any]], patterns: list[tuple[re.Pattern[str], str]]) -> list[str]:
    findings: list[str] = []
    for f in files:
        filename = f.get("filename", "<unknown>")
        for line in _added_lines(f.get("patch")):
            for pattern, label in patterns:
                if pattern.search(line):
                    findings.append(f"{filename}: {label}")
    return list(dict.fromkeys(findings))


def review_findings(review_type: str, pull: dict[str, Any], files: list[dict[str, Any]]) -> dict[str, list[str]]:
    """Group heuristic findings by category for the requested review type."""
    categories = ["code-quality", "security", "performance"] if review_type == "comprehensive" else [review_type]
    out: dict[str, list[str]] = {}

    if "code-quality" in categories:
        quality = _scan(files, _QUALITY_PATTERNS)
        for f in files:
            if isinstance(f.get("additions"), int) and f["additions"] > 400:
                quality.append(f"{f.get('filename')}: large change ({f['additions']} added lines)")
        source_changed = [f for f in files if not _TEST_PATH_RE.search(str(f.get("filename", "")))]
        tests_changed = [f for f in files if _TEST_PATH_RE.search(str(f.get("filename", "")))]
        if source_changed and not tests_changed:
            quality.append("No test files were changed alongside source changes")
        if not (pull.get("body") or "").strip():
            quality.append("Pull request has no description")
        out["code-quality"] = quality

    if "security" in categories:
        security = _scan(files, _SECURITY_PATTERNS)
        for f in files:
            name = str(f.get("filename", ""))
            if name.rsplit("/", 1)[-1] in (".env", "id_rsa", "credentials.json"):
                security.append(f"{name}: sensitive file committed")
        out["security"] = security

    if "performance" in categories:
        performance = _scan(files, _PERFORMANCE_PATTERNS)
        if len(files) > 50:
            performance.append(f"Pull request touches {len(files)} files; consider splitting it")
        out["performance"] = performance

    return {k: v[:_MAX_FINDINGS] for k, v in out.items()}


def _render_findings(findings: dict[str, list[str]]) -> str:
    sections = []
    for category, items in findings.items():
        body = "\n".join(f"- {item}" for item in items) if items else "- No issues found"
        sections.append(f"### {category}\n{body}")
    return "\n\n".join(sections)


async def _list_pull_files(runtime: Runtime, base: str) -> list[dict[str, Any]]:
    files: list[dict[str, Any]] = []
    for page in range(1, _MAX_FILE_PAGES + 1):
        batch = await runtime.github.request_json(
            method="GET",
            path=f"{base}/files",
            params={"per_page": str(_FILES_PER_PAGE), "page": str(page)},
            budget=runtime.budget(),
        )
        if not isinstance(batch, list):
            raise _unexpected("pull request files")
        files.extend(f for f in batch if isinstance(f, dict))
        if len(batch) < _FILES_PER_PAGE:
            break
    return files


async def review_pull_request(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    owner: str = arguments["owner"]
    repo: str = arguments["repo"]
    number: int = arguments["pullNumber"]
    review_type: str = arguments["reviewType"]
    base = f"/repos/{owner}/{repo}/pulls/{number}"

    pull, files = await gather_settled(
        runtime.github.request_json(method="GET", path=base, budget=runtime.budget()),
        _list_pull_files(runtime, base),
    )
    if not isinstance(pull, dict):
        raise _unexpected("pull request")

    findings = review_findings(review_type, pull, files)
    body = f"## Automated {review_type} review\n\n{_render_findings(findings)}"

    review = await runtime.github.request_json(
        method="POST",
        path=f"{base}/reviews",
        json_body={"body": body, "event": "COMMENT"},
        budget=runtime.budget(),
    )
    if not isinstance(review, dict):
        raise _unexpected("review")

    changed = pull.get("changed_files")
    if not isinstance(changed, int):
        changed = len(files)
    user = pull.get("user")
    author = user.get("login") if isinstance(user, dict) else "unknown"
    summary = (
        f"#{number} {pull.get('title', '')} by {author}\n"
        f"{changed} files changed, +{pull.get('additions', 0)} -{pull.get('deletions', 0)}"
    )
    total = sum(len(v) for v in findings.values())
    return ToolOutput(
        blocks=(
            TextBlock("pull_request", summary),
            TextBlock("findings", _render_findings(findings)),
            TextBlock("review", f"Posted review with {total} findings\n{review.get('html_url', '')}".rstrip()),
        )
    )


# ---------------------------------------------------------------------------
# create_workflow


async def create_workflow(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    owner: str = arguments["owner"]
    repo: str = arguments["repo"]
    content = templates.render_workflow(
        workflow_name=arguments["workflowName"],
        workflow_type=arguments["workflowType"],
        language=arguments["language"],
        triggers=arguments["triggers"],
        environment=arguments.get("environment"),
    )
    path = f".github/workflows/{templates.workflow_filename(arguments['workflowName'])}"

    action, data = await _upsert_file(
        runtime,
        owner=owner,
        repo=repo,
        path=path,
        content=content,
        message=f"Add {arguments['workflowName']} workflow",
    )
    file_obj = data.get("content")
    url = file_obj.get("html_url") if isinstance(file_obj, dict) else None
    header = f"{action.capitalize()} {path} in {owner}/{repo}"
    if isinstance(url, str):
        header += f"\n{url}"
    return ToolOutput(blocks=(TextBlock("workflow", header), TextBlock("content", content)))


# ---------------------------------------------------------------------------
# setup_issue_triage


async def _ensure_label(runtime: Runtime, *, owner: str, repo: str, name: str) -> str:
    try:
        await runtime.github.request_json(
            method="POST",
            path=f"/repos/{owner}/{repo}/labels",
            json_body={
                "name": name,
                "color": templates.label_color(name),
                "description": f"Issues about {name}",
            },
            budget=runtime.budget(),
        )
    except SafeError as err:
        # GitHub seeds new repositories with default labels such as bug and question.
        if err.status_code == 422 and "already_exists" in (err.hint or ""):
            return "exists"
        raise
    return "created"


async def setup_issue_triage(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    owner: str = arguments["owner"]
    repo: str = arguments["repo"]
    categories: list[str] = list(dict.fromkeys(arguments["labelCategories"]))

    outcomes = await gather_settled(*(_ensure_label(runtime, owner=owner, repo=repo, name=c) for c in categories))

    files = [
        (".github/ISSUE_TEMPLATE/bug_report.md", templates.render_issue_template("bug")),
        (".github/ISSUE_TEMPLATE/feature_request.md", templates.render_issue_template("feature")),
    ]
    if arguments["setupAutomation"]:
        files.append((".github/workflows/issue-triage.yml", templates.render_triage_workflow(categories)))

    written = []
    for path, content in files:
        action, _ = await _upsert_file(runtime, owner=owner, repo=repo, path=path, content=content, message=f"Add {path}")
        written.append(f"- {path} ({action})")

    blocks = [
        TextBlock("labels", "\n".join(f"- {name} ({outcome})" for name, outcome in zip(categories, outcomes)) or "- none"),
        TextBlock("files", "\n".join(written)),
    ]
    if not arguments["setupAutomation"]:
        blocks.append(TextBlock("automation", "Triage workflow not requested"))
    return ToolOutput(blocks=tuple(blocks))


# ---------------------------------------------------------------------------
# analyze_repository


def _analysis_findings(analysis_type: str, repo_info: dict[str, Any], names: set[str]) -> dict[str, list[str]]:
    lowered = {n.lower() for n in names}

    def has(*candidates: str) -> bool:
        return any(c.lower() in lowered for c in candidates)

    checks: dict[str, list[tuple[bool, str]]] = {
        "structure": [
            (has("src", "lib", "app", "pkg", "cmd"), "No conventional source directory (src/, lib/, app/)"),
            (has("tests", "test", "__tests__", "spec"), "No top-level test directory"),
            (has(".gitignore"), "Missing .gitignore"),
            (has(".github"), "No .github directory (workflows, templates)"),
        ],
        "documentation": [
            (has("readme.md", "readme", "readme.rst"), "Missing README"),
            (has("contributing.md"), "Missing CONTRIBUTING.md"),
            (has("license", "license.md", "license.txt"), "Missing LICENSE"),
            (bool(repo_info.get("description")), "Repository has no description"),
            (bool(repo_info.get("topics")), "Repository has no topics"),
        ],
        "security": [
            (has("security.md"), "Missing SECURITY.md policy"),
            (not has(".env"), "A .env file is committed at the repository root"),
            (has("license", "license.md", "license.txt"), "No license declared"),
        ],
        "code-quality": [
            (has(".github"), "No CI workflows detected"),
            (has(".editorconfig", ".eslintrc", ".eslintrc.json", ".eslintrc.js", "pyproject.toml", ".prettierrc", "setup.cfg"), "No lint/format configuration found"),
            (has("tests", "test", "__tests__", "spec"), "No tests found at the top level"),
        ],
    }
    selected = list(checks) if analysis_type == "comprehensive" else [analysis_type]
    return {cat: [msg for ok, msg in checks[cat] if not ok] for cat in selected}


async def analyze_repository(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    owner: str = arguments["owner"]
    repo: str = arguments["repo"]
    analysis_type: str = arguments["analysisType"]

    async def _contents() -> object:
        try:
            return await runtime.github.request_json(
                method="GET",
                path=f"/repos/{owner}/{repo}/contents",
                budget=runtime.budget(),
            )
        except SafeError as err:
            # Empty repositories have no contents tree.
            if err.status_code == 404:
                return []
            raise

    repo_info, contents, languages = await gather_settled(
        runtime.github.request_json(method="GET", path=f"/repos/{owner}/{repo}", budget=runtime.budget()),
        _contents(),
        runtime.github.request_json(method="GET", path=f"/repos/{owner}/{repo}/languages", budget=runtime.budget()),
    )
    if not isinstance(repo_info, dict):
        raise _unexpected("repository")
    if not isinstance(contents, list):
        raise _unexpected("contents")
    names = {str(item.get("name")) for item in contents if isinstance(item, dict)}

    overview = [
        f"{repo_info.get('full_name', f'{owner}/{repo}')}: {repo_info.get('description') or 'no description'}",
        f"default branch: {repo_info.get('default_branch', 'unknown')}",
        f"stars: {repo_info.get('stargazers_count', 0)}, forks: {repo_info.get('forks_count', 0)}, "
        f"open issues: {repo_info.get('open_issues_count', 0)}",
    ]
    if isinstance(languages, dict) and languages:
        total = sum(v for v in languages.values() if isinstance(v, int)) or 1
        parts = [f"{lang} {100 * size / total:.0f}%" for lang, size in languages.items() if isinstance(size, int)]
        overview.append("languages: " + ", ".join(parts))

    findings = _analysis_findings(analysis_type, repo_info, names)
    rendered = []
    for category, items in findings.items():
        body = "\n".join(f"- {i}" for i in items) if items else "- Looks good"
        rendered.append(f"### {category}\n{body}")
    total = sum(len(v) for v in findings.values())
    return ToolOutput(
        blocks=(
            TextBlock("overview", "\n".join(overview)),
            TextBlock("findings", "\n\n".join(rendered)),
            TextBlock("summary", f"{total} recommendations for {analysis_type} analysis"),
        )
    )
