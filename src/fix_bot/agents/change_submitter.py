"""Change submitter agent: turns a validated fix into a draft pull request."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel

from fix_bot.github.client import GitHubClient
from fix_bot.models import GenerationResult, ValidationJob

logger = logging.getLogger(__name__)

PR_LABELS = ["ai-generated", "needs-review"]
BRANCH_TEMPLATE = "fix-bot/issue-{issue}/draft-{stamp}"
COMMIT_TEMPLATE = "AI: auto-generated fix for issue #{issue}"
MAX_COMMENT_ERRORS = 10


class SubmissionResult(BaseModel):
    branch: str
    commit_sha: str
    pr_number: int
    pr_url: str


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


class ChangeSubmitter:
    """Commits generated changes to a new branch and opens a draft PR."""

    def __init__(
        self,
        github: GitHubClient,
        timestamp: Callable[[], str] = _timestamp,
    ) -> None:
        self.github = github
        self._timestamp = timestamp

    def submit(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        issue_title: str,
        result: GenerationResult,
        job: ValidationJob,
        token: str | None = None,
    ) -> SubmissionResult:
        """Create branch, tree, commit and draft PR for a passed validation.

        Raises:
            ValueError: If ``job`` did not pass validation.
            GitHubError: If any GitHub call fails.
        """
        if not job.valid:
            raise ValueError(f"Refusing to submit changes from job {job.job_id}: not valid")

        base = self.github.get_default_branch(owner, repo, token)
        base_sha = self.github.get_branch_sha(owner, repo, base, token)
        base_tree = self.github.get_commit_tree_sha(owner, repo, base_sha, token)

        branch = BRANCH_TEMPLATE.format(issue=issue_number, stamp=self._timestamp())
        self.github.create_branch(owner, repo, branch, base_sha, token)
        logger.info("Created branch %s from %s", branch, base)

        entries = [
            {
                "path": change.path,
                "mode": change.mode.value,
                "type": "blob",
                "content": change.content,
            }
            for change in result.changes
        ]
        tree_sha = self.github.create_tree(owner, repo, base_tree, entries, token)
        commit_sha = self.github.create_commit(
            owner,
            repo,
            COMMIT_TEMPLATE.format(issue=issue_number),
            tree_sha,
            base_sha,
            token,
        )
        self.github.update_ref(owner, repo, branch, commit_sha, token)

        pr = self.github.create_draft_pull_request(
            owner,
            repo,
            title=f"AI fix: {issue_title}",
            body=self._pr_body(issue_number, result, job),
            head=branch,
            base=base,
            labels=PR_LABELS,
            token=token,
        )
        pr_url = pr.get("html_url", "")
        logger.info("Opened draft PR #%s for issue #%s", pr.get("number"), issue_number)

        self.github.post_issue_comment(
            owner,
            repo,
            issue_number,
            f"A draft pull request with a proposed fix is ready for review: {pr_url}",
            token,
        )
        return SubmissionResult(
            branch=branch,
            commit_sha=commit_sha,
            pr_number=int(pr["number"]),
            pr_url=pr_url,
        )

    def notify_validation_failure(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        job: ValidationJob,
        token: str | None = None,
    ) -> dict[str, Any]:
        """Post the errors of a failed validation job on the issue."""
        errors = job.errors[:MAX_COMMENT_ERRORS]
        lines = [
            "The generated fix did not pass validation, so no pull request was opened.",
            "",
            f"Job `{job.job_id}` ({job.error_kind.value if job.error_kind else job.status.value}):",
            "",
            "```",
            *errors,
            "```",
        ]
        if len(job.errors) > len(errors):
            lines.append(f"...and {len(job.errors) - len(errors)} more.")
        return self.github.post_issue_comment(owner, repo, issue_number, "\n".join(lines), token)

    def _pr_body(self, issue_number: int, result: GenerationResult, job: ValidationJob) -> str:
        files = "\n".join(
            f"- `{change.path}`" + (f": {change.summary}" if change.summary else "")
            for change in result.changes
        )
        warnings = "\n".join(f"- {warning}" for warning in job.warnings) or "- none"
        return (
            f"Fixes #{issue_number}\n\n"
            f"## Summary\n{result.summary or 'Automated fix.'}\n\n"
            f"## Changed files\n{files}\n\n"
            f"## Validation\nJob `{job.job_id}` passed scoped type checking.\n"
            f"Warnings:\n{warnings}\n\n"
            "This pull request was generated automatically and needs human review."
        )
