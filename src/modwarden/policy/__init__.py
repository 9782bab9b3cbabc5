"""
Policy lists and rule matching.

- **matching.py**: Matrix glob semantics (``*``, ``?``, literal, anchored).
- **recommendation.py**: Stable/legacy recommendation identifiers and resolution.
- **list_rule.py**: The immutable :class:`ListRule` and rule-kind constants.
- **ban_list.py**: :class:`BanList`, built from policy room state.
"""
