"""Locate the source table of a model when no frame was stored with it."""

from __future__ import annotations

import ast
import sys
from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .handle import ModelHandle

__all__ = ["evaluate_expression", "as_frame", "source_table", "namespace_table"]


def evaluate_expression(expr: str, environment: Mapping[str, Any]) -> Any:
    """Evaluate a recorded argument expression against `environment`.

    Only names, attribute access and constant subscripts are supported
    (``df``, ``study.data``, ``frames["wave1"]``); nothing is executed.
    """
    node = ast.parse(str(expr).strip(), mode="eval").body
    return _evaluate(node, environment)


def _evaluate(node: ast.AST, environment: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Name):
        try:
            return environment[node.id]
        except KeyError as e:
            raise LookupError(f"{node.id!r} is not defined in the recorded environment") from e
    if isinstance(node, ast.Attribute):
        return getattr(_evaluate(node.value, environment), node.attr)
    if isinstance(node, ast.Subscript):
        return _evaluate(node.value, environment)[ast.literal_eval(node.slice)]
    if isinstance(node, ast.Constant):
        return node.value
    raise ValueError(f"Unsupported expression in recorded call: {ast.unparse(node)!r}")


def as_frame(obj: Any) -> pd.DataFrame:
    """Coerce a table-like object (mapping of columns, record array) to a DataFrame."""
    if isinstance(obj, pd.DataFrame):
        return obj
    if isinstance(obj, np.ndarray) and obj.dtype.names is None:
        raise TypeError("Plain arrays carry no column names.")
    if isinstance(obj, (Mapping, np.ndarray)):
        return pd.DataFrame(obj)
    raise TypeError(f"Expected a table, got {type(obj).__name__!r}.")


def source_table(handle: ModelHandle) -> pd.DataFrame:
    """Return the table the model was fitted on.

    The owned snapshot wins; otherwise the recorded ``data`` argument is
    re-evaluated in the recorded environment.
    """
    if handle.data is not None:
        return as_frame(handle.data)
    expr = handle.source_text("data")
    if expr is None:
        raise LookupError("model records neither a data snapshot nor a data argument")
    if handle.environment is None:
        raise LookupError(f"no environment recorded to evaluate data={expr!r}")
    return as_frame(evaluate_expression(expr, handle.environment))


def namespace_table(
    required: Sequence[str],
    namespace: Optional[Mapping[str, Any]] = None,
) -> Tuple[str, pd.DataFrame]:
    """Return the first DataFrame in `namespace` holding every required column.

    The default namespace is the ``__main__`` module (an interactive session
    or script). This is a guess: the match is by column names only.
    """
    if not required:
        raise LookupError("no variable names to match against")
    if namespace is None:
        namespace = vars(sys.modules["__main__"])
    need = set(required)
    for name, obj in list(namespace.items()):
        if isinstance(obj, pd.DataFrame) and need.issubset(obj.columns):
            return str(name), obj
    raise LookupError(f"no table in namespace has columns {sorted(need)!r}")
