"""Slack channel task extraction through an asynchronous AI workflow."""
