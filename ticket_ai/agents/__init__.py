# agents/__init__.py
"""
AI Agents Package

- ActionExecutor: runs the handler for a classified intent
- AssistantSession: one chat session (reducer state + memory)
- SessionManager: registry of live sessions
"""

from .action_executor import ActionExecutor, TurnContext
from .assistant_agent import AssistantSession, SessionManager, NavigationSink, LoggingNavigationSink

__all__ = [
    "ActionExecutor",
    "TurnContext",
    "AssistantSession",
    "SessionManager",
    "NavigationSink",
    "LoggingNavigationSink"
]
