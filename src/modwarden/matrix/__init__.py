"""
Matrix transport.

- **client.py**: :class:`MatrixClient`, an aiohttp-based client-server API
  client implementing the moderation capability protocols and the sync loop.
"""
