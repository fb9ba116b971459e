"""
Configuration settings for the exam engine.

Scalar values can be overridden through the environment by prefixing the
name with EXAM_ENGINE_. For example, to change the principal lookup keyword:
    EXAM_ENGINE_PRINCIPAL_KEYWORD=headteacher

Values are read lazily, so an override set after import still applies.
"""
import os


ENV_PREFIX = "EXAM_ENGINE_"

_DEFAULTS = {
    # Report attribution
    'PRINCIPAL_KEYWORD': 'principal',
    'MISSING_TEACHER_INITIALS': '-',

    # CSV loading
    'STUDENT_SUBJECTS_SEPARATOR': ';',

    # Summary payload precision
    'INSIGHT_POINTS_DECIMALS': 3,
    'INSIGHT_SCORE_DECIMALS': 2,
}


def _get_setting(name, default):
    """Get a setting from the environment or use default."""
    raw = os.environ.get(f'{ENV_PREFIX}{name}')
    if raw is None:
        return default
    if isinstance(default, int):
        return int(raw)
    return raw


class _ConfigProxy:
    """Lazy configuration proxy that resolves settings when accessed."""

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


_config = _ConfigProxy()


def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
