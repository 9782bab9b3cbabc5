"""
Real-time protections.

- **base.py**: :class:`Protection` contract and :class:`ProtectionContext`.
- **short_flooding.py**: Sliding-window burst detection per room and user.
- **first_message_is_image.py**: Kicks new joiners whose first post is media.
- **media.py**: Pure parsing of media references for audit records.
- **protections.py**: :data:`PROTECTIONS` registry and :class:`ProtectionEngine`.
"""
