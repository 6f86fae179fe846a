from __future__ import annotations

from typing import AbstractSet, Any, Callable, Dict, List, Mapping, Optional, Sequence
from warnings import warn

import numpy as np
import pandas as pd

from .adapters import as_handle
from .errors import GuessedDataWarning, ModelDataWarning
from .formula import R_LITERALS, bare_variable
from .handle import ModelHandle
from .recovery import as_frame, namespace_table, source_table
from .registry import ModelSpec, get_model_spec
from .roles import EFFECTS, match_arg, normalize_component
from .variables import VARIABLE_COMPONENTS, find_random_slopes, find_variables

__all__ = [
    "get_data",
    "resolve_fit_data",
    "merge_frames",
    "detransform_columns",
    "prepare_frame",
]


# ---- frame helpers ----------------------------------------------------------


def merge_frames(
    base: Optional[pd.DataFrame],
    other: Optional[pd.DataFrame],
    replace: bool = True,
) -> Optional[pd.DataFrame]:
    """Column-union of two frames, aligned by row position.

    With ``replace=True`` columns of `other` override same-named columns of
    `base` (the last merged frame wins); with ``replace=False`` only columns
    `base` does not have yet are added. Column order: `base` columns first,
    then new ones in `other`'s order.
    """
    if other is None:
        return None if base is None else base.copy()
    if base is None or base.shape[1] == 0:
        return other.copy()

    left = base.copy()
    right = other.copy()
    if len(left) == len(right):
        right.index = left.index
    else:
        left = left.reset_index(drop=True)
        right = right.reset_index(drop=True)

    if replace:
        for col in right.columns:
            if col in left.columns:
                left[col] = right[col]
    new_cols = [c for c in right.columns if c not in left.columns]
    if not new_cols:
        return left
    return pd.concat([left, right.loc[:, new_cols]], axis=1)


def detransform_columns(
    frame: pd.DataFrame, literals: AbstractSet[str] = R_LITERALS
) -> pd.DataFrame:
    """Rename transformed columns (``log(x)``) back to their source variable.

    A column keeps its transformed name when a different column already uses
    the bare name. If renaming produces duplicate names, the first wins.
    """
    existing = set(frame.columns)
    names: List[Any] = []
    for col in frame.columns:
        bare = bare_variable(col, literals) if isinstance(col, str) else None
        if bare is None or bare == col or bare in existing:
            names.append(col)
        else:
            names.append(bare)
    out = frame.copy()
    out.columns = names
    return out.loc[:, ~out.columns.duplicated()]


def prepare_frame(
    frame: Any,
    required: Sequence[str] = (),
    *,
    restrict: bool = True,
    na_omit: bool = False,
    literals: AbstractSet[str] = R_LITERALS,
) -> Optional[pd.DataFrame]:
    """Apply the uniform post-processing to a recovered table.

    Clean transformed names, project onto `required` (keeping the variables
    that are present), optionally drop incomplete rows. Returns None when
    nothing usable remains.
    """
    if frame is None:
        return None
    frame = detransform_columns(as_frame(frame), literals)
    if restrict and required:
        keep = [v for v in required if v in frame.columns]
        frame = frame.loc[:, keep]
    if na_omit:
        frame = frame.dropna()
    if frame.empty:
        return None
    return frame


# ---- tactics ----------------------------------------------------------------


def _append_id(handle: ModelHandle, frame: pd.DataFrame) -> pd.DataFrame:
    label = handle.id_label()
    if handle.id is None or not label:
        return frame
    values = np.asarray(handle.id).ravel()
    if values.shape[0] != len(frame):
        raise ValueError(
            f"id has {values.shape[0]} values but the model frame has {len(frame)} rows"
        )
    out = frame.drop(columns=[label], errors="ignore")
    out[label] = values
    return out


def _stored_frames(handle: ModelHandle, spec: ModelSpec, **_: Any) -> pd.DataFrame:
    parts = spec.frame_parts if spec.frame_parts is not None else tuple(handle.frames)
    frames = [handle.frames[p] for p in parts if handle.frames.get(p) is not None]
    if not frames:
        raise LookupError("model stores no observation frame")
    merged: Optional[pd.DataFrame] = None
    for f in frames:
        merged = merge_frames(merged, as_frame(f), replace=(spec.merge == "replace"))
    if spec.id_column:
        merged = _append_id(handle, merged)
    return merged


def _augmented_frame(
    handle: ModelHandle, spec: ModelSpec, required: Sequence[str], **_: Any
) -> pd.DataFrame:
    frame = detransform_columns(_stored_frames(handle, spec), handle.formula_literals())
    remain = [v for v in required if v not in frame.columns]
    if not remain:
        return frame
    source = source_table(handle)
    extra = [v for v in remain if v in source.columns]
    if not extra:
        return frame
    return merge_frames(frame, source.loc[:, extra], replace=False)


def _source(handle: ModelHandle, **_: Any) -> pd.DataFrame:
    return source_table(handle)


def _namespace(
    handle: ModelHandle,
    required: Sequence[str],
    namespace: Optional[Mapping[str, Any]] = None,
    **_: Any,
) -> pd.DataFrame:
    _, table = namespace_table(required, namespace)
    return table


_TACTICS: Dict[str, Callable[..., pd.DataFrame]] = {
    "frame": _stored_frames,
    "augment": _augmented_frame,
    "source": _source,
    "namespace": _namespace,
}


# ---- public API -------------------------------------------------------------


def _required_variables(handle: ModelHandle, effects: str, component: str) -> List[str]:
    names = list(find_variables(handle, effects=effects, component=component, flatten=True))
    if effects != "fixed" and component in ("all", "conditional"):
        names += [v for v in find_random_slopes(handle) if v not in names]
    return names


def _submodel_handles(handle: ModelHandle, spec: ModelSpec) -> List[ModelHandle]:
    """Wrapped models to merge; `"*"` selects every entry of `handle.inner`."""
    if "*" in spec.submodels:
        return list(handle.inner.values())
    return [handle.inner[k] for k in spec.submodels if handle.inner.get(k) is not None]


def _merge_submodels(
    submodels: Sequence[ModelHandle], effects: str, verbose: bool
) -> Optional[pd.DataFrame]:
    out: Optional[pd.DataFrame] = None
    for sub in submodels:
        d = get_data(sub, effects=effects, verbose=verbose)
        if d is None:
            continue
        if out is None:
            out = d
            continue
        common = [c for c in d.columns if c in out.columns]
        if common:
            out = out.merge(d, how="outer", on=common, sort=False)
        else:
            out = merge_frames(out, d)
    return out


def get_data(
    model: Any,
    effects: str = "all",
    component: str = "all",
    verbose: bool = True,
    namespace: Optional[Mapping[str, Any]] = None,
) -> Optional[pd.DataFrame]:
    """Return the data used to fit `model`, or None if it cannot be recovered.

    Recovery follows the model spec's tactics in order; the first one that
    yields observations wins:

    - ``frame``: observation frames stored on the model (merged across parts)
    - ``augment``: stored frames plus missing variables from the source data
    - ``source``: the data snapshot, or the recorded ``data`` argument
      evaluated in the recorded environment
    - ``namespace``: first table in `namespace` (default ``__main__``) that has
      all required columns; flagged with `GuessedDataWarning`

    Column names are detransformed (``log(x)`` -> ``x``) and the result is
    projected onto the variables selected by `effects`/`component`. The
    tactic used is recorded in ``result.attrs["source"]`` (``"submodels"``
    when the frames of wrapped models were merged).

    Invalid `effects`/`component` values raise ValueError; recovery failures
    never raise and are reported as `ModelDataWarning` when `verbose`.
    """
    if isinstance(model, pd.DataFrame):
        return model

    effects = match_arg(effects, EFFECTS, "effects")
    component = normalize_component(component, VARIABLE_COMPONENTS)
    handle = as_handle(model)
    spec = get_model_spec(handle.model_class)

    if spec.unsupported is not None:
        if verbose:
            warn(spec.unsupported, ModelDataWarning, stacklevel=2)
        return None

    if spec.delegate is not None:
        inner = handle.inner.get(spec.delegate)
        if inner is not None:
            return get_data(
                inner, effects=effects, component=component, verbose=verbose, namespace=namespace
            )
        if verbose:
            warn(
                f"Could not recover model data: {handle.model_class!r} wraps no "
                f"{spec.delegate!r} model.",
                ModelDataWarning,
                stacklevel=2,
            )
        return None

    if spec.submodels:
        submodels = _submodel_handles(handle, spec)
        if not submodels:
            if verbose:
                warn(
                    f"Could not recover model data: {handle.model_class!r} stores no "
                    "sub-models to take the data from.",
                    ModelDataWarning,
                    stacklevel=2,
                )
            return None
        out = _merge_submodels(submodels, effects, verbose)
        if out is not None:
            out.attrs["source"] = "submodels"
            return out
        # fall back to the wrapper's own tactics

    required = _required_variables(handle, effects, component)
    restrict_frame = effects != "all" or component != "all"
    failures: List[str] = []

    for tactic in spec.tactics:
        try:
            raw = _TACTICS[tactic](
                handle=handle, spec=spec, required=required, namespace=namespace
            )
            out = prepare_frame(
                raw,
                required,
                restrict=(tactic != "frame" or restrict_frame),
                na_omit=spec.na_omit,
                literals=handle.formula_literals(),
            )
        except Exception as exc:
            failures.append(f"{tactic}: {exc}")
            continue
        if out is None:
            failures.append(f"{tactic}: no observations")
            continue

        out.attrs["source"] = tactic
        if tactic == "namespace" and verbose:
            warn(
                "Model data was guessed from a table in the namespace whose columns "
                "match the model variables; it may not be the data the model was fitted on.",
                GuessedDataWarning,
                stacklevel=2,
            )
        return out

    if verbose:
        detail = "; ".join(failures) if failures else "no recovery tactic applies"
        warn(f"Could not recover model data ({detail}).", ModelDataWarning, stacklevel=2)
    return None


resolve_fit_data = get_data
