"""
Route/schedule workspace engine.

Holds route groups and schedule sets in memory, projects them to YAML and
back, derives reverse routes and timetables, validates, and submits to an
external route directory.
"""

__version__ = "0.1.0"
