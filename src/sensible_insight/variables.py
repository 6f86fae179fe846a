from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from .adapters import as_handle
from .formula import parse_formula, split_formula
from .handle import ModelHandle
from .registry import ModelSpec, get_model_spec
from .roles import EFFECTS, VARIABLE_ROLES, flatten_groups, match_arg, normalize_component

__all__ = [
    "VARIABLE_COMPONENTS",
    "find_formula",
    "find_response",
    "find_random",
    "find_random_slopes",
    "find_variables",
]

VARIABLE_COMPONENTS = (
    "conditional",
    "zero_inflated",
    "dispersion",
    "instruments",
    "smooth_terms",
)

# Variable roles kept for each component selector.
_COMPONENT_ROLES: Dict[str, tuple] = {
    "conditional": ("response", "conditional", "random", "cluster"),
    "zero_inflated": ("zero_inflated", "zero_inflated_random"),
    "dispersion": ("dispersion",),
    "instruments": ("instruments",),
    "smooth_terms": ("smooth_terms",),
}
_RANDOM_ROLES = ("random", "zero_inflated_random")


def find_formula(model: Any) -> Dict[str, str]:
    """Return the model's formula(s) keyed by model part.

    One-string formulas with extra `|` parts (``y ~ a + b | c``) are split
    according to the model spec's `bar_roles`.
    """
    handle = as_handle(model)
    spec = get_model_spec(handle.model_class)
    f = handle.formula
    if f is None:
        return {}
    if isinstance(f, Mapping):
        return {str(k): str(v) for k, v in f.items() if v is not None}

    lhs, parts = split_formula(f)
    if len(parts) == 1 or not spec.bar_roles:
        return {"conditional": str(f)}

    n_extra = min(len(spec.bar_roles), len(parts) - 1)
    # Unassigned trailing parts stay with the conditional formula.
    main = " | ".join([parts[0]] + parts[1 + n_extra:])
    out = {"conditional": f"{lhs} ~ {main}" if lhs else f"~ {main}"}
    for role, rhs in zip(spec.bar_roles, parts[1:1 + n_extra]):
        out[role] = f"~ {rhs}"
    return out


def _add(groups: Dict[str, List[str]], role: str, names) -> None:
    bucket = groups.setdefault(role, [])
    for n in names:
        if n not in bucket:
            bucket.append(n)


def _variable_groups(handle: ModelHandle, spec: ModelSpec) -> Dict[str, List[str]]:
    """All variables by role, before effects/component filtering."""
    groups: Dict[str, List[str]] = {}
    literals = handle.formula_literals()
    for part, text in find_formula(handle).items():
        parsed = parse_formula(text, literals)
        _add(groups, "response", parsed.response)
        if part == "conditional":
            for p in parsed.parts:
                _add(groups, "conditional", p.fixed)
                _add(groups, "smooth_terms", p.smooth)
                _add(groups, "random", p.random)
        elif part == "zero_inflated":
            for p in parsed.parts:
                _add(groups, "zero_inflated", p.fixed + p.smooth)
                _add(groups, "zero_inflated_random", p.random)
        elif part == "random":
            # nlme-style `random = ~ 1 | g`: grouping factors follow the bar
            grouping = parsed.parts[1:] or parsed.parts
            for p in grouping:
                _add(groups, "random", p.variables)
        elif part in VARIABLE_ROLES:
            for p in parsed.parts:
                _add(groups, part, p.variables)
        else:
            for p in parsed.parts:
                _add(groups, "conditional", p.variables)

    id_label = handle.id_label()
    if spec.id_role is not None and id_label:
        _add(groups, spec.id_role, [id_label])

    return {r: groups[r] for r in VARIABLE_ROLES if groups.get(r)}


def find_variables(
    model: Any,
    effects: str = "all",
    component: str = "all",
    flatten: bool = False,
) -> Union[Dict[str, List[str]], List[str]]:
    """Return the names of all variables used by a model, grouped by role.

    Possible keys: response, conditional, cluster, dispersion, instruments,
    random, zero_inflated, zero_inflated_random, smooth_terms. Each variable
    is reported once per role even if several terms transform it.
    """
    effects = match_arg(effects, EFFECTS, "effects")
    component = normalize_component(component, VARIABLE_COMPONENTS)
    handle = as_handle(model)
    groups = _variable_groups(handle, get_model_spec(handle.model_class))

    if component != "all":
        keep = _COMPONENT_ROLES[component]
        groups = {k: v for k, v in groups.items() if k in keep}
    if effects == "fixed":
        groups = {k: v for k, v in groups.items() if k not in _RANDOM_ROLES}
    elif effects == "random":
        groups = {k: v for k, v in groups.items() if k in _RANDOM_ROLES}

    if flatten:
        return flatten_groups(groups, VARIABLE_ROLES)
    return groups


def find_response(model: Any, combine: bool = True) -> Optional[Union[str, List[str]]]:
    """Return the response.

    With ``combine=True`` the left-hand side is returned as written
    (e.g. ``"cbind(k, n - k)"``); otherwise its variables as a list.
    """
    handle = as_handle(model)
    text = find_formula(handle).get("conditional")
    if text is None:
        return None
    lhs, _ = split_formula(text)
    if not lhs:
        return None
    if combine:
        return lhs
    return list(parse_formula(text, handle.formula_literals()).response)


def find_random(model: Any, flatten: bool = False) -> Union[Dict[str, List[str]], List[str]]:
    """Return the grouping factors of the random effects."""
    return find_variables(model, effects="random", flatten=flatten)


def find_random_slopes(model: Any) -> List[str]:
    """Return variables that carry random slopes, e.g. ``x`` in ``(x | g)``."""
    handle = as_handle(model)
    out: List[str] = []
    for part, text in find_formula(handle).items():
        if part not in ("conditional", "zero_inflated"):
            continue
        for p in parse_formula(text, handle.formula_literals()).parts:
            out.extend(n for n in p.slopes if n not in out)
    return out
