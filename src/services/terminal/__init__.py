"""Interactive terminal sessions into pods over WebSocket."""

from .bridge import ExecTarget, SessionState, TerminalBridge, TerminalSession

__all__ = ["ExecTarget", "SessionState", "TerminalBridge", "TerminalSession"]
