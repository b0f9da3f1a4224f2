"""Jinja2 filters for manifest templates.

Manifests are YAML, so every value that may contain YAML-significant
characters (``:``, ``#``, ``{``, leading ``*`` ...) goes through ``yaml_str``.
"""

import json
import re
from collections.abc import Iterable
from typing import Any

_K8S_INVALID = re.compile(r"[^a-z0-9.-]")


def k8s_name(value: Any) -> str:
    """Lower-case a value for use as a Kubernetes object name.

    Examples:
        >>> k8s_name("My-App-dev")
        'my-app-dev'
    """
    return str(value).lower()


def k8s_label(value: Any) -> str:
    """Make a value safe as a Kubernetes label value.

    Lower-cases, replaces characters outside ``[a-z0-9.-]`` with ``-`` and
    trims to 63 characters.

    Examples:
        >>> k8s_label("Development Team")
        'development-team'
    """
    label = _K8S_INVALID.sub("-", str(value).lower())
    return label[:63].strip("-.")


def csv(values: Iterable[Any], separator: str = ",") -> str:
    """Join values with commas.

    Examples:
        >>> csv(["frontend", "backend"])
        'frontend,backend'
    """
    return separator.join(str(v) for v in values)


def yaml_str(value: Any) -> str:
    """Render a value as a double-quoted YAML scalar.

    A JSON string literal is a valid YAML double-quoted scalar, so escaping
    is delegated to ``json.dumps``.

    Examples:
        >>> yaml_str("regexp:^frontend-main-latest$")
        '"regexp:^frontend-main-latest$"'
        >>> yaml_str(True)
        '"true"'
    """
    if isinstance(value, bool):
        value = "true" if value else "false"
    elif value is None:
        value = ""
    return json.dumps(str(value), ensure_ascii=False)
