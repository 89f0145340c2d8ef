"""
Fintrack - Source Package

Client core of a personal-finance application: turns the inconsistent
responses of a remote REST backend into canonical records and the
aggregates a dashboard shows.

DESIGN PRINCIPLES:
1. The backend is uncontrolled; odd shapes degrade to empty, never crash
2. Aggregates are pure and recomputed on demand
3. Local state is a cache; the backend owns persistence
4. Failures become notifications, prior data stays on screen
"""

__version__ = "1.0.0"
__author__ = "Fintrack Team"
