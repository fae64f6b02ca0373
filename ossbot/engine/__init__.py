"""Issue classification and cleanup engine.

Key Components:
    - TemplateChecker: Parses Markdown into sections and checks them against a template
    - IssueHandler: Classifies new issues and builds notification emails
    - StalenessEvaluator: needs-info -> stale -> closed state machine
    - PullRequestHandler: Pull request triage
    - CronHandler: Bounded-concurrency sweep over configured repos
    - ActionDispatcher: Executes actions against GitHub and email

Example:
    >>> from ossbot.engine import IssueHandler
    >>> handler = IssueHandler(github, config)
    >>> actions = await handler.classify_new_issue(repo, issue)
"""

from ossbot.engine.cleanup import CronHandler, SweepResult
from ossbot.engine.dispatcher import ActionDispatcher
from ossbot.engine.issues import IssueHandler
from ossbot.engine.pull_requests import PullRequestHandler
from ossbot.engine.staleness import StalenessEvaluator
from ossbot.engine.template import TemplateChecker

__all__ = [
    "ActionDispatcher",
    "CronHandler",
    "IssueHandler",
    "PullRequestHandler",
    "StalenessEvaluator",
    "SweepResult",
    "TemplateChecker",
]
