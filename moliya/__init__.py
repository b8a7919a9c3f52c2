"""
Moliya AI - conversational personal finance ledger.

Free-text messages are turned into proposed transactions by an AI
intent resolver; nothing reaches the ledger until the user confirms.
"""

__version__ = "0.1.0"
