"""Workspace managers.

Each module owns one slice of workspace state (project config, preferences,
unit selection, file watching, editor integration).  Managers raise domain
exceptions (``ConfigLoadError``, ``PreconditionError``, ``LookupError``),
never HTTP exceptions -- that translation is the router's responsibility.
"""
