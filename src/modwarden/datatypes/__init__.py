"""
Shared data types.

- **action_datatypes.py**: :class:`ActionType` and :class:`ActionData` describing
  each enforcement action for logging and the action log.
- **event_datatypes.py**: Typed membership/message/room event views and
  :func:`parse_event`.
"""
