"""Tests for the AI fix orchestrator."""

from datetime import timedelta

import pytest

from app.analyzers.base import AggregatedIssue, IssueExample, Severity
from app.exceptions import AnalysisNotCompleted, AnalysisNotFound, FixNotFound, GitHubAPIError, NoIssuesToFix
from app.models.analysis import RunStatus
from app.services.analysis_service import AnalysisService
from app.services.fix_service import (
    PULL_REQUEST_TITLE,
    FixService,
    build_fix_prompt,
    build_pull_request_body,
    FixResult,
    fix_branch_name,
)
from app.services.run_store import RunStore

REPO_ID = 101
USER_ID = "4242"


def full_file(prompt: str) -> str:
    """Pull the file content back out of a fix prompt."""
    body = prompt.split("Full file content:\n```", 1)[1]
    body = body.split("\n", 1)[1]
    return body.rsplit("\n```\n\nPlease provide", 1)[0]


def rewrite(prompt: str) -> str:
    fixed = full_file(prompt).replace("console.log", "logger.info").replace("var ", "let ")
    return f"Here you go:\n```javascript\n{fixed}\n```"


async def completed_analysis(db_session, github):
    service = AnalysisService(db_session)
    run = await service.start_analysis(REPO_ID, "octo/repo", "main", USER_ID)
    return await service.run_analysis(run.id, github)


class TestHelpers:
    def test_branch_name_uses_first_eight_hex(self):
        assert fix_branch_name("3f2a9c1d-0000-4000-8000-000000000000") == "ai-fix-3f2a9c1d"

    def test_prompt_contents(self):
        """The prompt names the rule, the file and the minimal-edit request."""
        issue = AggregatedIssue(
            rule="AvoidConsoleLog",
            ruleset="logging",
            severity=Severity.WARNING,
            description="Avoid console.log statements in production code",
            count=1,
            examples=[IssueExample(file="a.js", line=3, snippet="> 3: console.log('x');")],
        )

        prompt = build_fix_prompt(issue, issue.examples[0], "console.log('x');\n", "javascript")

        assert prompt.startswith("You are an expert javascript developer")
        assert "ISSUE: AvoidConsoleLog - Avoid console.log statements in production code" in prompt
        assert "> 3: console.log('x');" in prompt
        assert "```javascript\nconsole.log('x');\n" in prompt
        assert "Keep your edits minimal" in prompt

    def test_pull_request_body_lists_committed_fixes(self):
        results = [
            FixResult(rule="AvoidConsoleLog", file="a.js", line=3, committed=True, branch="b"),
            FixResult(rule="UseConstOrLet", file="b.js", line=1, committed=True, branch="b"),
        ]

        body = build_pull_request_body(results)

        assert "- AvoidConsoleLog in a.js\n- UseConstOrLet in b.js" in body
        assert body.endswith("Please review the changes carefully before merging.")

    def test_result_dict_shapes(self):
        committed = FixResult(rule="R", file="a.js", line=1, committed=True, branch="ai-fix-1")
        suggested = FixResult(rule="R", file="a.js", line=1, committed=False, original_content="a", fixed_content="b")

        assert committed.to_dict() == {"rule": "R", "file": "a.js", "line": 1, "committed": True, "branch": "ai-fix-1"}
        assert suggested.to_dict()["original_content"] == "a"
        assert "branch" not in suggested.to_dict()


class TestStartFix:
    """Test fix preconditions."""

    @pytest.mark.asyncio
    async def test_creates_pending_fix_with_all_issues(self, db_session, make_github, sample_js):
        analysis = await completed_analysis(db_session, make_github({"a.js": sample_js}))

        fix = await FixService(db_session).start_fix(analysis.id, USER_ID)

        assert fix.status == RunStatus.PENDING.value
        assert [i["rule"] for i in fix.issues_to_fix] == ["AvoidConsoleLog", "UseConstOrLet"]
        assert fix.branch == "main"
        assert fix.create_pull_request is False

    @pytest.mark.asyncio
    async def test_selects_issues_by_rule(self, db_session, make_github, sample_js):
        analysis = await completed_analysis(db_session, make_github({"a.js": sample_js}))

        fix = await FixService(db_session).start_fix(analysis.id, USER_ID, rule_ids=["UseConstOrLet"])

        assert [i["rule"] for i in fix.issues_to_fix] == ["UseConstOrLet"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [RunStatus.PENDING, RunStatus.RUNNING, RunStatus.FAILED])
    async def test_requires_completed_analysis(self, db_session, status):
        """Unfinished or failed analyses cannot be fixed and no fix is recorded."""
        analysis_service = AnalysisService(db_session)
        run = await analysis_service.start_analysis(REPO_ID, "octo/repo", "main", USER_ID)
        await RunStore(db_session).update_analysis(run, status=status.value)
        service = FixService(db_session)

        with pytest.raises(AnalysisNotCompleted) as exc:
            await service.start_fix(run.id, USER_ID)

        assert f"'{status.value}'" in str(exc.value)
        assert await service.list_fixes(run.id, USER_ID) == []

    @pytest.mark.asyncio
    async def test_missing_analysis(self, db_session):
        with pytest.raises(AnalysisNotFound):
            await FixService(db_session).start_fix("7b0c6f0e-4a4e-4c59-9a0e-3f4c1c9d2e11", USER_ID)

    @pytest.mark.asyncio
    async def test_other_users_analysis(self, db_session, make_github, sample_js):
        analysis = await completed_analysis(db_session, make_github({"a.js": sample_js}))

        with pytest.raises(AnalysisNotFound):
            await FixService(db_session).start_fix(analysis.id, "someone-else")

    @pytest.mark.asyncio
    async def test_clean_analysis_has_nothing_to_fix(self, db_session, make_github):
        analysis = await completed_analysis(db_session, make_github({"a.js": "let a = 1;\n"}))

        with pytest.raises(NoIssuesToFix):
            await FixService(db_session).start_fix(analysis.id, USER_ID)

    @pytest.mark.asyncio
    async def test_unmatched_selection(self, db_session, make_github, sample_js):
        analysis = await completed_analysis(db_session, make_github({"a.js": sample_js}))
        service = FixService(db_session)

        with pytest.raises(NoIssuesToFix):
            await service.start_fix(analysis.id, USER_ID, rule_ids=["AvoidPrint"])

        assert await service.list_fixes(analysis.id, USER_ID) == []


class TestRunFixSuggestions:
    """Fix runs that only record suggestions."""

    @pytest.mark.asyncio
    async def test_records_suggestion(self, db_session, make_github, make_llm, sample_js):
        """One changed file gives one uncommitted result and no branch or PR."""
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID, rule_ids=["AvoidConsoleLog"])

        fix = await service.run_fix(fix.id, github, make_llm(rewrite))

        assert fix.status == RunStatus.COMPLETED.value
        assert len(fix.fixed_issues) == 1
        result = fix.fixed_issues[0]
        assert result["committed"] is False
        assert result["file"] == "a.js"
        assert result["line"] == 3
        assert result["original_content"] == sample_js
        assert "logger.info('x');" in result["fixed_content"]
        assert result["fixed_content"].endswith("\n")
        assert github.created_branches == []
        assert github.commits == []
        assert github.pull_requests == []
        assert fix.pull_request_url is None

    @pytest.mark.asyncio
    async def test_unchanged_output_is_not_recorded(self, db_session, make_github, make_llm, sample_js):
        """Model output equal to the file is a no-op."""
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID)

        fix = await service.run_fix(fix.id, github, make_llm(lambda prompt: f"```\n{full_file(prompt)}```"))

        assert fix.status == RunStatus.COMPLETED.value
        assert fix.fixed_issues == []

    @pytest.mark.asyncio
    async def test_empty_output_is_not_recorded(self, db_session, make_github, make_llm, sample_js):
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID)

        fix = await service.run_fix(fix.id, github, make_llm(lambda prompt: "   "))

        assert fix.status == RunStatus.COMPLETED.value
        assert fix.fixed_issues == []

    @pytest.mark.asyncio
    async def test_example_failure_is_skipped(self, db_session, make_github, make_llm):
        """A model error on one file does not stop the others."""
        github = make_github({"a.js": "console.log(1);\n", "b.js": "console.log(2);\n"})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID)

        def flaky(prompt):
            if "console.log(1)" in prompt:
                raise RuntimeError("quota exceeded")
            return rewrite(prompt)

        fix = await service.run_fix(fix.id, github, make_llm(flaky))

        assert fix.status == RunStatus.COMPLETED.value
        assert [r["file"] for r in fix.fixed_issues] == ["b.js"]

    @pytest.mark.asyncio
    async def test_file_fetch_failure_is_skipped(self, db_session, make_github, make_llm, sample_js):
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID)
        github.fail_paths.add("a.js")

        fix = await service.run_fix(fix.id, github, make_llm(rewrite))

        assert fix.status == RunStatus.COMPLETED.value
        assert fix.fixed_issues == []

    @pytest.mark.asyncio
    async def test_unknown_fix(self, db_session, make_github, make_llm):
        with pytest.raises(FixNotFound):
            await FixService(db_session).run_fix(
                "7b0c6f0e-4a4e-4c59-9a0e-3f4c1c9d2e11", make_github({}), make_llm()
            )

    @pytest.mark.asyncio
    async def test_reaped_fix_stays_failed(self, db_session, session_factory, make_github, make_llm, sample_js):
        """A worker that outlives its lease stops and leaves the reaped fix failed."""
        reaped = []

        class ReapingGitHub(make_github):
            reap = False

            async def get_file_content(self, owner, repo, path, ref=None):
                if self.reap:
                    async with session_factory() as other:
                        reaped.append(await AnalysisService(other).reap_stale_runs(timedelta(seconds=-60)))
                return await super().get_file_content(owner, repo, path, ref)

        github = ReapingGitHub({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID)
        github.reap = True
        llm = make_llm(rewrite)

        fix = await service.run_fix(fix.id, github, llm)

        assert reaped == [1]
        assert fix.status == RunStatus.FAILED.value
        assert "abandoned" in fix.error
        assert fix.fixed_issues == []
        assert len(llm.prompts) == 1


class TestRunFixPullRequests:
    """Fix runs that commit to a branch and open a pull request."""

    @pytest.mark.asyncio
    async def test_two_files_one_branch_one_pull_request(self, db_session, make_github, make_llm):
        """Fixes in two files share one branch and one pull request."""
        github = make_github({"a.js": "console.log('x');\n", "b.js": "var y = 1;\n"})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID, create_pull_request=True)
        branch = fix_branch_name(fix.id)

        fix = await service.run_fix(fix.id, github, make_llm(rewrite))

        assert fix.status == RunStatus.COMPLETED.value
        assert github.created_branches == [(branch, "base-sha")]
        assert [(c["path"], c["branch"], c["sha"]) for c in github.commits] == [
            ("a.js", branch, "sha-a.js"),
            ("b.js", branch, "sha-b.js"),
        ]
        assert github.commits[0]["message"] == "Fix AvoidConsoleLog: Avoid console.log statements in production code"
        assert len(github.pull_requests) == 1
        pull_request = github.pull_requests[0]
        assert pull_request["title"] == PULL_REQUEST_TITLE
        assert pull_request["head"] == branch
        assert pull_request["base"] == "main"
        assert "- AvoidConsoleLog in a.js" in pull_request["body"]
        assert "- UseConstOrLet in b.js" in pull_request["body"]
        assert fix.pull_request_url == "https://github.com/octo/repo/pull/7"
        assert fix.pull_request_number == 7
        assert fix.fix_branch == branch
        assert all(r["committed"] and r["branch"] == branch for r in fix.fixed_issues)

    @pytest.mark.asyncio
    async def test_same_file_commits_build_on_each_other(self, db_session, make_github, make_llm, sample_js):
        """A second fix in the same file starts from the first commit."""
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID, create_pull_request=True)

        def one_rule_at_a_time(prompt):
            content = full_file(prompt)
            if "ISSUE: AvoidConsoleLog" in prompt:
                content = content.replace("console.log", "logger.info")
            else:
                content = content.replace("var ", "let ")
            return f"```js\n{content}```"

        await service.run_fix(fix.id, github, make_llm(one_rule_at_a_time))

        assert [c["sha"] for c in github.commits] == ["sha-a.js", "commit-sha-1"]
        final = github.commits[1]["content"]
        assert "logger.info('x');" in final
        assert "let b = 2;" in final

    @pytest.mark.asyncio
    async def test_existing_branch_is_reused(self, db_session, make_github, make_llm, sample_js):
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID, create_pull_request=True)
        github.branches[fix_branch_name(fix.id)] = "earlier-sha"

        fix = await service.run_fix(fix.id, github, make_llm(rewrite))

        assert github.created_branches == []
        assert [c["branch"] for c in github.commits] == [fix_branch_name(fix.id)]

    @pytest.mark.asyncio
    async def test_no_commits_no_pull_request(self, db_session, make_github, make_llm, sample_js):
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID, create_pull_request=True)

        fix = await service.run_fix(fix.id, github, make_llm(lambda prompt: full_file(prompt)))

        assert fix.status == RunStatus.COMPLETED.value
        assert github.created_branches == []
        assert github.pull_requests == []

    @pytest.mark.asyncio
    async def test_missing_base_branch_skips_commits(self, db_session, make_github, make_llm, sample_js):
        github = make_github({"a.js": sample_js})
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID, create_pull_request=True)
        github.branches.clear()

        fix = await service.run_fix(fix.id, github, make_llm(rewrite))

        assert fix.status == RunStatus.COMPLETED.value
        assert github.commits == []
        assert fix.fixed_issues == []

    @pytest.mark.asyncio
    async def test_pull_request_failure_fails_run(self, db_session, make_github, make_llm, sample_js):
        """Errors outside a single example fail the whole run."""
        github = make_github({"a.js": sample_js})

        async def refuse(*args, **kwargs):
            raise GitHubAPIError(403, "Resource not accessible by integration", "/pulls")

        github.open_pull_request = refuse
        analysis = await completed_analysis(db_session, github)
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID, create_pull_request=True)

        fix = await service.run_fix(fix.id, github, make_llm(rewrite))

        assert fix.status == RunStatus.FAILED.value
        assert "Resource not accessible" in fix.error
        assert fix.completed_at is not None


class TestReadingFixes:
    @pytest.mark.asyncio
    async def test_get_and_list(self, db_session, make_github, sample_js):
        analysis = await completed_analysis(db_session, make_github({"a.js": sample_js}))
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID)

        assert (await service.get_fix(fix.id, USER_ID)).id == fix.id
        assert [f.id for f in await service.list_fixes(analysis.id, USER_ID)] == [fix.id]

    @pytest.mark.asyncio
    async def test_hidden_from_other_users(self, db_session, make_github, sample_js):
        analysis = await completed_analysis(db_session, make_github({"a.js": sample_js}))
        service = FixService(db_session)
        fix = await service.start_fix(analysis.id, USER_ID)

        with pytest.raises(FixNotFound):
            await service.get_fix(fix.id, "someone-else")
