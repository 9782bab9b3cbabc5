"""
modwarden - Policy-list moderation for Matrix rooms

modwarden subscribes to shared policy lists (rules naming users, rooms or
servers with a recommended ban or kick), applies them to the membership of
the rooms it protects, and watches live traffic with independent protections.

Core Components:

- **Policy**: Glob-matched rules grouped into lists read from policy rooms
- **Reconciliation**: Applies every list to every protected room, reporting
  per-room failures without aborting the pass
- **Protections**: Stateful per-room, per-user handlers (burst flooding,
  media as the first message after joining) that kick and redact on their own
- **Action log**: SQLite history of every enforcement, including dry runs

Usage:
    from modwarden.main import main
    main()
"""
