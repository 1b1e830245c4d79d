# services/util.py

import os


def get_data_path():
    path = get_env('BRIDGE_DATA_PATH')
    return path.strip() if path else 'data'


def get_env(env: str):
    return os.environ.get(env)


def replace_first(text: str, old: str, new: str = "") -> str:
    """Replace only the first occurrence of *old* in *text*."""
    return text.replace(old, new, 1)


def is_truthy(value) -> bool:
    """OneBot flags arrive as bool, int or string ("1", "true")."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)
