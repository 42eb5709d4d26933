"""Equality rules for container specifications.

Identity and configuration equality are separate predicates:
``same_identity`` answers "is this the same container", ``specs_equal``
answers "would recreating it change anything".
"""

import json
import logging
from typing import Any, List, Optional

from pydantic import BaseModel

from dockhand.models.container import Container, ContainerSpec


logger = logging.getLogger(__name__)

# Fields that never force a recreate
COMPARE_SKIP_FIELDS = frozenset({
    "extends",
    "kill_timeout",
    "network_disabled",
    "state",
    "keep_volumes",
})

# argv order is execution-significant
ORDERED_FIELDS = frozenset({"cmd", "entrypoint"})


def comparable_fields() -> List[str]:
    """Return the ContainerSpec fields taken into account by specs_equal."""
    return [name for name in ContainerSpec.model_fields if name not in COMPARE_SKIP_FIELDS]


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, BaseModel):
        return all(_is_zero(getattr(value, name)) for name in type(value).model_fields)
    if isinstance(value, (str, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    if isinstance(value, (bool, int, float)):
        return not value
    return False


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


def _sort_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def field_equal(field: str, a: Any, b: Any) -> bool:
    """Compare one ContainerSpec field of two specs."""
    if _is_zero(a) or _is_zero(b):
        # absent is the same as the zero value, never the same as a real value
        return _is_zero(a) and _is_zero(b)

    a, b = _plain(a), _plain(b)
    if isinstance(a, list) and isinstance(b, list) and field not in ORDERED_FIELDS:
        return sorted(a, key=_sort_key) == sorted(b, key=_sort_key)
    return a == b


def first_difference(a: ContainerSpec, b: ContainerSpec) -> Optional[str]:
    """Return the name of the first field that differs, or None."""
    for field in comparable_fields():
        if not field_equal(field, getattr(a, field), getattr(b, field)):
            return field
    return None


def specs_equal(a: ContainerSpec, b: ContainerSpec) -> bool:
    """Return True if both specs describe the same configuration."""
    return first_difference(a, b) is None


def containers_equal(expected: Container, actual: Container) -> bool:
    """Return True if the actual container satisfies the expected one.

    Besides the configuration, the image id (when both sides know it) and the
    observed running state (when the actual container carries one) have to
    match.
    """
    if not expected.is_same(actual):
        return False

    field = first_difference(expected.spec, actual.spec)
    if field is not None:
        logger.debug(f"Comparing '{expected}' and '{actual}': found difference in '{field}'")
        return False

    if expected.image_id and actual.image_id and expected.image_id != actual.image_id:
        logger.debug(
            f"Comparing '{expected}' and '{actual}': image updated "
            f"(was {actual.image_id[:19]} became {expected.image_id[:19]})"
        )
        return False

    if actual.state is None:
        return True

    if expected.spec.state == "ran" and actual.state.exit_code != 0:
        logger.debug(
            f"Comparing '{expected}' and '{actual}': container should run once, "
            f"but previous exit code was {actual.state.exit_code}"
        )
        return False

    if expected.spec.running != actual.state.running:
        logger.debug(
            f"Comparing '{expected}' and '{actual}': found difference in state: "
            f"Running: {expected.spec.running} != {actual.state.running}"
        )
        return False

    return True
