"""ossbot: GitHub organization bot for issue triage and cleanup.

Receives GitHub webhook events, classifies new issues against per-repo
configuration and issue templates, and periodically sweeps repositories to
move unanswered issues from needs-info to stale to closed.
"""

__version__ = "0.3.0"
