from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from .adapters import as_handle
from .handle import ModelHandle
from .registry import ModelSpec, get_model_spec
from .roles import ALIASES, ROLES, flatten_groups, match_arg

__all__ = [
    "PARAMETER_COMPONENTS",
    "classify_parameters",
    "find_parameters",
    "resolve_parameter_names",
]

PARAMETER_COMPONENTS = ("all",) + tuple(r for r in ROLES if r != "response") + tuple(ALIASES)


def classify_parameters(handle: ModelHandle, spec: ModelSpec) -> Dict[str, List[str]]:
    """Partition the coefficient names of `handle` into roles.

    Every coefficient index lands in exactly one role:

    - structural containers map wholesale to their role
      (unknown containers named like a role use it, others the remainder role);
    - flat names are matched by exact name, then by prefix in declaration
      order, and whatever is left goes to `spec.remainder_role`.
    """
    assigned: Dict[str, List[str]] = {r: [] for r in ROLES}
    cf = handle.coefficients

    if isinstance(cf, Mapping):
        for part, names in cf.items():
            role = spec.parameter_parts.get(part)
            if role is None:
                role = part if part in ROLES else spec.remainder_role
            assigned[role].extend(str(n) for n in names)
    else:
        names = [str(n) for n in cf]
        roles: List[Optional[str]] = [spec.parameter_names.get(n) for n in names]
        for prefix, role in spec.parameter_prefixes:
            for i, n in enumerate(names):
                if roles[i] is None and n.startswith(prefix):
                    roles[i] = role
        # by elimination
        for i, n in enumerate(names):
            assigned[roles[i] or spec.remainder_role].append(n)

    return {r: assigned[r] for r in ROLES if assigned[r]}


def find_parameters(
    model: Any,
    component: str = "all",
    flatten: bool = False,
) -> Union[Dict[str, List[str]], List[str]]:
    """Return the model's parameter names grouped by role.

    Parameters
    ----------
    model:
        A `ModelHandle` or an object `as_handle` understands.
    component:
        ``"all"`` or one role (``"zi"``/``"ip"`` are accepted as aliases).
        A role the model does not have gives an empty result.
    flatten:
        Return one ordered list (roles in declaration order, duplicates removed).
    """
    component = match_arg(component, PARAMETER_COMPONENTS, "component")
    component = ALIASES.get(component, component)

    handle = as_handle(model)
    groups = classify_parameters(handle, get_model_spec(handle.model_class))
    if component != "all":
        groups = {k: v for k, v in groups.items() if k == component}

    if flatten:
        return flatten_groups(groups, ROLES)
    return groups


resolve_parameter_names = find_parameters
