"""Tests for API schemas and validation."""

import uuid

import pytest
from pydantic import ValidationError

from app.models.analysis import AnalysisRun, FixRun, utcnow
from app.schemas.analysis import (
    AnalysisDetailResponse,
    AnalysisRequest,
    FixRequest,
    FixRunResponse,
)


class TestAnalysisRequestSchema:
    """Test AnalysisRequest validation."""

    def test_valid_request(self):
        request = AnalysisRequest(full_name="octo/repo", branch="develop")
        assert request.full_name == "octo/repo"
        assert request.branch == "develop"

    def test_branch_defaults_to_main(self):
        assert AnalysisRequest(full_name="octo/repo").branch == "main"

    @pytest.mark.parametrize("full_name", ["octo", "octo/", "/repo", "octo/repo/extra", ""])
    def test_rejects_malformed_full_name(self, full_name):
        with pytest.raises(ValidationError):
            AnalysisRequest(full_name=full_name)

    def test_rejects_empty_branch(self):
        with pytest.raises(ValidationError):
            AnalysisRequest(full_name="octo/repo", branch="")


class TestFixRequestSchema:
    def test_defaults(self):
        """No rules selects every issue; suggestions only by default."""
        request = FixRequest()
        assert request.rule_ids == []
        assert request.create_pull_request is False


class TestResponseSchemas:
    """Test serialization of ORM records."""

    def test_analysis_detail_from_model(self):
        run = AnalysisRun(
            id=uuid.uuid4(),
            repo_id=101,
            repo_full_name="octo/repo",
            branch="main",
            user_id="4242",
            status="completed",
            issue_count=1,
            issues=[
                {
                    "rule": "AvoidPrint",
                    "ruleset": "logging",
                    "severity": "INFO",
                    "description": "Consider using a logger instead of print statements",
                    "count": 1,
                    "examples": [{"file": "a.py", "line": 1, "snippet": "> 1: print(1)"}],
                }
            ],
            file_count=1,
            files_scanned=3,
            created_at=utcnow(),
        )

        response = AnalysisDetailResponse.model_validate(run)

        assert response.issues[0].rule == "AvoidPrint"
        assert response.issues[0].examples[0].line == 1
        assert response.files_scanned == 3
        assert response.error is None

    def test_fix_from_model(self):
        fix = FixRun(
            id=uuid.uuid4(),
            analysis_id=uuid.uuid4(),
            repo_id=101,
            repo_full_name="octo/repo",
            branch="main",
            user_id="4242",
            status="completed",
            create_pull_request=False,
            issues_to_fix=[],
            fixed_issues=[
                {
                    "rule": "AvoidPrint",
                    "file": "a.py",
                    "line": 1,
                    "committed": False,
                    "original_content": "print(1)\n",
                    "fixed_content": "logger.info(1)\n",
                }
            ],
            created_at=utcnow(),
        )

        response = FixRunResponse.model_validate(fix)

        assert response.fixed_issues[0].committed is False
        assert response.fixed_issues[0].branch is None
        assert response.pull_request_url is None
