"""MemoBot: conversational memory capture and recall.

Turns free-form chat messages into categorized, tagged, related memories
and answers questions about them through a tool-calling reasoning loop.
"""

__version__ = "0.1.0"
