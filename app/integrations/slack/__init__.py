"""Slack Integration Package.

Contains the shared Slack Web API client used by the chat channel.
"""
