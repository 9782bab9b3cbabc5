"""
Rule enforcement.

- **capabilities.py**: Protocols describing what the core needs from the chat client.
- **errors.py**: :class:`RoomUpdateError` and permission/fatal classification.
- **enforcement.py**: :class:`Enforcer`, the no-op aware ban/kick/redact wrapper.
- **ban_reconciler.py**: :class:`BanReconciler`, applying policy lists to rooms.
"""
