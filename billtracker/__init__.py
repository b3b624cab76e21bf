"""
Bill Tracker - Source Package

A personal bill manager: log recurring and one-off bills, track what
has been paid, and bulk-import bills by pasting free-form notes that
an LLM turns into structured records.

DESIGN PRINCIPLES:
1. AI extracts → Schema gate validates → Human confirms → Store commits
2. Fail early, fail visibly
3. Malformed model output never reaches the user
4. Every import step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Bill Tracker Team"
