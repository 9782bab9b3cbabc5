"""
Utility helpers for modwarden.

- **logger.py**: Centralized logging configuration with colored console output
  (printed through prompt_toolkit), a per-session rotating log file, and
  suppression of chatty library loggers.
"""
