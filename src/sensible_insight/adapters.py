"""Build `ModelHandle`s from fitted-model objects of other libraries."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .handle import ModelHandle

__all__ = ["as_handle", "from_statsmodels"]

_INTERCEPTS = ("const", "Intercept", "(Intercept)")


def as_handle(obj: Any) -> ModelHandle:
    """Return `obj` as a ModelHandle, adapting supported model objects."""
    if isinstance(obj, ModelHandle):
        return obj
    if type(obj).__module__.split(".", 1)[0] == "statsmodels":
        return from_statsmodels(obj)
    raise TypeError(
        f"Cannot introspect objects of type {type(obj).__name__!r}. "
        "Build a ModelHandle for it, or pass a statsmodels model/results object."
    )


def _param_names(results: Any, model: Any) -> List[str]:
    params = getattr(results, "params", None)
    index = getattr(params, "index", None)
    if index is not None:
        return [str(n) for n in index]
    return [str(n) for n in getattr(model, "exog_names", None) or ()]


def _match_column(frame: pd.DataFrame, values: Any) -> Optional[str]:
    """Name of the column of `frame` holding exactly `values`, if any."""
    values = np.asarray(values, dtype=object).ravel()
    for col in frame.columns:
        col_values = frame[col].to_numpy(dtype=object)
        if col_values.shape == values.shape and bool(np.all(col_values == values)):
            return str(col)
    return None


def _formula_from_arrays(data: Any) -> Optional[str]:
    endog = getattr(data, "orig_endog", None)
    exog = getattr(data, "orig_exog", None)
    if not isinstance(exog, pd.DataFrame):
        return None
    lhs = getattr(endog, "name", None) or ""
    terms = [str(c) for c in exog.columns if str(c) not in _INTERCEPTS]
    return f"{lhs} ~ {' + '.join(terms) or '1'}"


def _frame_from_arrays(data: Any) -> Optional[pd.DataFrame]:
    endog = getattr(data, "orig_endog", None)
    exog = getattr(data, "orig_exog", None)
    parts = [p for p in (endog, exog) if isinstance(p, (pd.Series, pd.DataFrame))]
    if not parts:
        return None
    frame = pd.concat(parts, axis=1)
    return frame.loc[:, [c for c in frame.columns if str(c) not in _INTERCEPTS]]


def _fitted_rows(frame: pd.DataFrame, data: Any) -> pd.DataFrame:
    """Rows of `frame` the fit used; statsmodels drops incomplete rows by default."""
    labels = getattr(data, "row_labels", None)
    if labels is None or len(labels) == len(frame):
        return frame
    labels = pd.Index(labels)
    if not labels.isin(frame.index).all():
        return frame
    return frame.loc[labels]


def _inflation_frame(model: Any, names: List[str], index: pd.Index) -> Optional[pd.DataFrame]:
    """Columns of the zero-inflation design, named after the `inflate_` parameters."""
    exog_infl = getattr(model, "exog_infl", None)
    infl_names = [n[len("inflate_"):] for n in names if n.startswith("inflate_")]
    if exog_infl is None or not infl_names:
        return None
    values = np.asarray(exog_infl)
    if values.ndim != 2 or values.shape != (len(index), len(infl_names)):
        return None
    keep = [i for i, n in enumerate(infl_names) if n not in _INTERCEPTS]
    return pd.DataFrame(values[:, keep], columns=[infl_names[i] for i in keep], index=index)


def from_statsmodels(
    results: Any,
    *,
    environment: Optional[Mapping[str, Any]] = None,
) -> ModelHandle:
    """Describe a statsmodels model (or fitted results) as a ModelHandle.

    Formula models keep the DataFrame they were built from
    (``model.data.frame``); array models are described from their pandas
    endog/exog when available.
    """
    model = getattr(results, "model", None)
    if model is None:
        model, results = results, None
    model_class = type(model).__name__
    data = getattr(model, "data", None)

    formula: Any = getattr(model, "formula", None)
    frame = getattr(data, "frame", None)
    if not isinstance(frame, pd.DataFrame):
        frame = None
    if formula is None:
        formula = _formula_from_arrays(data)
        if frame is None:
            frame = _frame_from_arrays(data)
    if frame is not None:
        frame = _fitted_rows(frame, data)

    names = _param_names(results, model)
    coefficients: Any = names

    k_fe = getattr(model, "k_fe", None)
    if model_class == "MixedLM" and k_fe is not None:
        coefficients = {"fe": names[: int(k_fe)], "re": names[int(k_fe):]}

    zero_terms = [
        n[len("inflate_"):] for n in names
        if n.startswith("inflate_") and n[len("inflate_"):] not in _INTERCEPTS
    ]
    if model_class.startswith("ZeroInflated") and isinstance(formula, str):
        parts: Dict[str, str] = {"conditional": formula}
        if zero_terms:
            parts["zero_inflated"] = "~ " + " + ".join(zero_terms)
        formula = parts
    if model_class.startswith("ZeroInflated") and frame is not None:
        extra = _inflation_frame(model, names, frame.index)
        if extra is not None:
            new = [c for c in extra.columns if c not in frame.columns]
            frame = pd.concat([frame, extra.loc[:, new]], axis=1)

    id_name = None
    groups = getattr(model, "groups", None)
    if groups is not None and frame is not None:
        try:
            id_name = _match_column(frame, groups)
        except (TypeError, ValueError):
            id_name = None

    return ModelHandle(
        model_class=model_class,
        formula=formula,
        coefficients=coefficients,
        data=None if frame is None else frame.copy(),
        environment=None if environment is None else dict(environment),
        id=groups,
        id_name=id_name,
        meta={"library": "statsmodels"},
    )
