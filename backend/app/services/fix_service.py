"""AI fix orchestration for completed analyses."""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.analyzers import AggregatedIssue, IssueExample, classify
from app.exceptions import (
    AnalysisNotCompleted,
    AnalysisNotFound,
    FixNotFound,
    GitHubAPIError,
    NoIssuesToFix,
)
from app.models.analysis import FixRun, RunStatus, utcnow
from app.services.code_extraction import extract_code_block, preserve_trailing_newline
from app.services.github_service import FileContent, GitHubService
from app.services.llm_service import LLMService
from app.services.run_store import RunStore

logger = logging.getLogger(__name__)

PULL_REQUEST_TITLE = "AI Auto Fix: Code improvements"
DEFAULT_PROMPT_LANGUAGE = "javascript"


@dataclass
class FixResult:
    """Outcome of fixing one issue example."""

    rule: str
    file: str
    line: int
    committed: bool
    branch: str | None = None
    original_content: str | None = None
    fixed_content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rule": self.rule,
            "file": self.file,
            "line": self.line,
            "committed": self.committed,
        }
        if self.committed:
            data["branch"] = self.branch
        else:
            data["original_content"] = self.original_content
            data["fixed_content"] = self.fixed_content
        return data


def fix_branch_name(fix_id: uuid.UUID | str) -> str:
    return f"ai-fix-{str(fix_id)[:8]}"


def build_fix_prompt(issue: AggregatedIssue, example: IssueExample, content: str, language: str) -> str:
    """Prompt asking the model for the whole file with one issue fixed."""
    return f"""You are an expert {language} developer helping fix code issues.

ISSUE: {issue.rule} - {issue.description}

This issue was found in file: {example.file}

Code with issue:
```
{example.snippet}
```

Full file content:
```{language}
{content}
```

Please provide the entire fixed file content. Keep your edits minimal and focused only on fixing the specific issue. Don't add comments unless they are essential for understanding the fix."""


def build_pull_request_body(results: list[FixResult]) -> str:
    lines = "\n".join(f"- {result.rule} in {result.file}" for result in results if result.committed)
    return (
        "This PR contains AI-generated fixes for the following issues:\n"
        f"{lines}\n\n"
        "Please review the changes carefully before merging."
    )


class FixService:
    """Turns aggregated issues into model-generated file edits."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = RunStore(db)

    async def start_fix(
        self,
        analysis_id: uuid.UUID | str,
        user_id: str,
        rule_ids: list[str] | None = None,
        create_pull_request: bool = False,
    ) -> FixRun:
        """Validate the analysis and record a pending fix run.

        Args:
            analysis_id: Completed analysis to fix
            user_id: Requesting user, must own the analysis
            rule_ids: Rules to fix; empty or None selects every issue
            create_pull_request: Commit fixes to a branch and open a PR

        Raises:
            AnalysisNotFound: no such analysis for this user
            AnalysisNotCompleted: the analysis is not completed
            NoIssuesToFix: the selection is empty
        """
        analysis = await self.store.get_analysis(analysis_id, user_id=user_id)
        if analysis is None:
            raise AnalysisNotFound(analysis_id)
        if analysis.status != RunStatus.COMPLETED.value:
            raise AnalysisNotCompleted(analysis.id, analysis.status)

        issues = analysis.issues or []
        if rule_ids:
            wanted = set(rule_ids)
            issues = [issue for issue in issues if issue["rule"] in wanted]
        if not issues:
            raise NoIssuesToFix(analysis.id)

        fix = await self.store.create_fix(analysis, issues, create_pull_request)
        logger.info(
            "Queued fix %s for analysis %s (%d rules, pull request: %s)",
            fix.id,
            analysis.id,
            len(issues),
            create_pull_request,
        )
        return fix

    async def run_fix(
        self,
        fix_id: uuid.UUID | str,
        github: GitHubService,
        llm: LLMService | None = None,
    ) -> FixRun:
        """Generate fixes for every selected example and apply or record them.

        A failure on one example is logged and skipped; anything else fails
        the whole run. Failures are recorded on the run rather than raised.
        A run failed by the reaper meanwhile is left failed and the worker stops.
        """
        fix = await self.store.get_fix(fix_id)
        if fix is None:
            raise FixNotFound(fix_id)

        now = utcnow()
        started = await self.store.transition(
            fix,
            (RunStatus.PENDING,),
            status=RunStatus.RUNNING.value,
            started_at=now,
            heartbeat_at=now,
        )
        if not started:
            logger.warning("Fix %s is already %s, not running it again", fix.id, fix.status)
            return fix
        logger.info("Fix %s started for %s@%s", fix.id, fix.repo_full_name, fix.branch)

        try:
            runner = _FixRunner(fix, github, llm or LLMService())
            for issue_data in fix.issues_to_fix:
                issue = AggregatedIssue.from_dict(issue_data)
                for example in issue.examples:
                    try:
                        result = await runner.fix_example(issue, example)
                    except Exception as exc:
                        logger.warning("Could not fix %s in %s:%d: %s", issue.rule, example.file, example.line, exc)
                        continue
                    if result is not None:
                        runner.results.append(result)
                    alive = await self.store.transition(
                        fix,
                        (RunStatus.RUNNING,),
                        heartbeat_at=utcnow(),
                        fixed_issues=[r.to_dict() for r in runner.results],
                    )
                    if not alive:
                        logger.warning("Fix %s was %s while fixing, stopping", fix.id, fix.status)
                        return fix

            changes: dict[str, Any] = {}
            committed = [result for result in runner.results if result.committed]
            if fix.create_pull_request and committed:
                owner, name = fix.owner_and_name
                pull_request = await github.open_pull_request(
                    owner,
                    name,
                    title=PULL_REQUEST_TITLE,
                    body=build_pull_request_body(committed),
                    head=runner.branch_name,
                    base=fix.branch,
                )
                changes.update(
                    fix_branch=runner.branch_name,
                    pull_request_url=pull_request.url,
                    pull_request_number=pull_request.number,
                )

            finished = utcnow()
            completed = await self.store.transition(
                fix,
                (RunStatus.RUNNING,),
                status=RunStatus.COMPLETED.value,
                fixed_issues=[r.to_dict() for r in runner.results],
                heartbeat_at=finished,
                completed_at=finished,
                **changes,
            )
            if not completed:
                logger.warning("Fix %s was %s before it finished, dropping results", fix.id, fix.status)
                return fix
            logger.info("Fix %s completed with %d fixes", fix.id, len(runner.results))
        except Exception as exc:
            logger.exception("Fix %s failed: %s", fix_id, exc)
            await self.db.rollback()
            fix = await self.store.get_fix(fix_id)
            failed = await self.store.transition(
                fix,
                (RunStatus.RUNNING,),
                status=RunStatus.FAILED.value,
                error=str(exc) or exc.__class__.__name__,
                completed_at=utcnow(),
            )
            if not failed:
                logger.warning("Fix %s was already %s", fix.id, fix.status)
        return fix

    async def get_fix(self, fix_id: uuid.UUID | str, user_id: str) -> FixRun:
        fix = await self.store.get_fix(fix_id, user_id=user_id)
        if fix is None:
            raise FixNotFound(fix_id)
        return fix

    async def list_fixes(self, analysis_id: uuid.UUID | str, user_id: str) -> list[FixRun]:
        analysis = await self.store.get_analysis(analysis_id, user_id=user_id)
        if analysis is None:
            raise AnalysisNotFound(analysis_id)
        return await self.store.list_fixes(analysis.id, user_id)


class _FixRunner:
    """Per-run state: the fix branch and the latest committed version of each file."""

    def __init__(self, fix: FixRun, github: GitHubService, llm: LLMService):
        self.fix = fix
        self.github = github
        self.llm = llm
        self.owner, self.repo = fix.owner_and_name
        self.branch_name = fix_branch_name(fix.id)
        self.branch_ready = False
        self.committed_files: dict[str, FileContent] = {}
        self.results: list[FixResult] = []

    async def fix_example(self, issue: AggregatedIssue, example: IssueExample) -> FixResult | None:
        """Fix one occurrence. Returns None when the model changed nothing."""
        current = self.committed_files.get(example.file)
        if current is None:
            current = await self.github.get_file_content(self.owner, self.repo, example.file, self.fix.branch)

        language = classify(example.file) or DEFAULT_PROMPT_LANGUAGE
        response = await self.llm.generate(build_fix_prompt(issue, example, current.content, language))
        fixed = extract_code_block(response)
        if not fixed:
            logger.info("Empty fix for %s in %s", issue.rule, example.file)
            return None
        fixed = preserve_trailing_newline(current.content, fixed)
        if fixed == current.content:
            logger.info("No change for %s in %s", issue.rule, example.file)
            return None

        if not self.fix.create_pull_request:
            return FixResult(
                rule=issue.rule,
                file=example.file,
                line=example.line,
                committed=False,
                original_content=current.content,
                fixed_content=fixed,
            )

        await self._ensure_branch()
        new_sha = await self.github.commit_file(
            self.owner,
            self.repo,
            example.file,
            fixed,
            branch=self.branch_name,
            sha=current.sha,
            message=f"Fix {issue.rule}: {issue.description}",
        )
        self.committed_files[example.file] = FileContent(path=example.file, content=fixed, sha=new_sha)
        return FixResult(
            rule=issue.rule,
            file=example.file,
            line=example.line,
            committed=True,
            branch=self.branch_name,
        )

    async def _ensure_branch(self) -> None:
        if self.branch_ready:
            return
        if await self.github.get_branch_head(self.owner, self.repo, self.branch_name) is None:
            base_sha = await self.github.get_branch_head(self.owner, self.repo, self.fix.branch)
            if base_sha is None:
                raise GitHubAPIError(404, f"Branch {self.fix.branch} not found", self.fix.repo_full_name)
            await self.github.create_branch(self.owner, self.repo, self.branch_name, base_sha)
        self.branch_ready = True
