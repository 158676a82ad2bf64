"""
Double-Entry Balancer - Source Package

Balancing engine for document entry in a double-entry bookkeeping
application. Editing surfaces (inline row entry, full form entry,
split dialogs) all drive the same pure functions.

DESIGN PRINCIPLES:
1. Debit ("Winien") and credit ("Ma") must agree before anything persists
2. Never overwrite a value the user is actively editing
3. Partial input never silently generates lines
4. Commit is all-or-nothing per document
5. Persistence and account lookup are swappable collaborators
"""

__version__ = "1.0.0"
__author__ = "Double-Entry Balancer Team"
