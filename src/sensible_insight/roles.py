from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

__all__ = [
    "ROLES",
    "VARIABLE_ROLES",
    "EFFECTS",
    "ALIASES",
    "match_arg",
    "normalize_component",
    "flatten_groups",
]

# Declaration order is also the output order of every grouping.
ROLES: Tuple[str, ...] = (
    "response",
    "conditional",
    "zero_inflated",
    "random",
    "dispersion",
    "instruments",
    "cluster",
    "smooth_terms",
    "infrequent_purchase",
    "auxiliary",
)

VARIABLE_ROLES: Tuple[str, ...] = (
    "response",
    "conditional",
    "cluster",
    "dispersion",
    "instruments",
    "random",
    "zero_inflated",
    "zero_inflated_random",
    "smooth_terms",
)

EFFECTS: Tuple[str, ...] = ("all", "fixed", "random")

ALIASES: Dict[str, str] = {
    "zi": "zero_inflated",
    "ip": "infrequent_purchase",
}


def match_arg(value: str, choices: Sequence[str], argname: str) -> str:
    """Return `value` if it is one of `choices`, else raise ValueError."""
    if isinstance(value, str) and value in choices:
        return value
    raise ValueError(
        f"Invalid {argname} {value!r}. Available: {tuple(choices)}"
    )


def normalize_component(value: str, legal: Sequence[str]) -> str:
    """Validate a component selector against `legal` and resolve aliases."""
    choices = ("all",) + tuple(legal) + tuple(
        a for a, target in ALIASES.items() if target in legal
    )
    value = match_arg(value, choices, "component")
    return ALIASES.get(value, value)


def flatten_groups(groups: Mapping[str, Iterable[str]], order: Optional[Sequence[str]] = None) -> List[str]:
    """Collapse a role -> names grouping into one ordered, de-duplicated list."""
    keys = list(order) if order is not None else list(groups.keys())
    keys += [k for k in groups.keys() if k not in keys]
    out: List[str] = []
    seen = set()
    for k in keys:
        for name in groups.get(k, ()):
            if name not in seen:
                seen.add(name)
                out.append(name)
    return out
