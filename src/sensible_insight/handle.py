from __future__ import annotations

import inspect
from dataclasses import dataclass, field, replace
from typing import AbstractSet, Any, Dict, Mapping, Optional, Sequence, Union

import pandas as pd

from .formula import PYTHON_LITERALS, R_LITERALS

__all__ = ["ModelHandle"]

Coefficients = Union[Sequence[str], Mapping[str, Sequence[str]]]


@dataclass(frozen=True)
class ModelHandle:
    """Read-only description of a fitted model.

    The handle owns everything the introspection functions need: the formula,
    coefficient names, the data snapshot taken at fit time and any observation
    frames the model materialised. Nothing is looked up lazily except through
    the recorded `call`/`environment` pair, which is only consulted when no
    snapshot was captured.
    """

    model_class: str
    formula: Optional[Union[str, Mapping[str, str]]] = None
    # Flat ordered names, or container name -> ordered names.
    coefficients: Coefficients = ()
    data: Optional[pd.DataFrame] = None
    frames: Mapping[str, pd.DataFrame] = field(default_factory=dict)
    # Argument name -> source expression text, e.g. {"data": "df", "id": "subject"}
    call: Mapping[str, str] = field(default_factory=dict)
    environment: Optional[Mapping[str, Any]] = None
    id: Optional[Any] = None
    id_name: Optional[str] = None
    inner: Mapping[str, "ModelHandle"] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    # ---- constructors ----
    @staticmethod
    def capture(
        model_class: str,
        *,
        formula: Optional[Union[str, Mapping[str, str]]] = None,
        coefficients: Coefficients = (),
        data: Optional[pd.DataFrame] = None,
        call: Optional[Mapping[str, str]] = None,
        environment: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> "ModelHandle":
        """Build a handle, recording the caller's namespace as the environment.

        `data` is copied so later mutation of the caller's table cannot leak
        into the handle.
        """
        if environment is None:
            frame = inspect.currentframe()
            caller = frame.f_back if frame is not None else None
            try:
                if caller is not None:
                    environment = {**caller.f_globals, **caller.f_locals}
            finally:
                del frame, caller
        return ModelHandle(
            model_class=model_class,
            formula=formula,
            coefficients=coefficients,
            data=None if data is None else data.copy(),
            call=dict(call or {}),
            environment=environment,
            **kwargs,
        )

    # ---- builders (pure; return new handle) ----
    def with_data(self, data: Optional[pd.DataFrame]) -> "ModelHandle":
        """Return a new handle with a data snapshot attached."""
        return replace(self, data=None if data is None else data.copy())

    def with_frame(self, part: str, frame: pd.DataFrame) -> "ModelHandle":
        """Return a new handle with an observation frame stored under `part`."""
        return replace(self, frames={**dict(self.frames), part: frame})

    def with_environment(self, environment: Mapping[str, Any]) -> "ModelHandle":
        """Return a new handle that resolves `call` expressions in `environment`."""
        return replace(self, environment=dict(environment))

    # ---- accessors ----
    def coefficient_names(self) -> list[str]:
        """Return every coefficient name in stored order."""
        cf = self.coefficients
        if isinstance(cf, Mapping):
            out: list[str] = []
            for names in cf.values():
                out.extend(str(n) for n in names)
            return out
        return [str(n) for n in cf]

    def source_text(self, argument: str) -> Optional[str]:
        """Return the source expression recorded for a call argument."""
        value = self.call.get(argument)
        return None if value is None else str(value)

    def id_label(self) -> Optional[str]:
        """Name of the grouping variable, as written in the fitting call."""
        return self.source_text("id") or self.id_name

    def formula_literals(self) -> AbstractSet[str]:
        """Names that are constants, not variables, in this model's formulas."""
        if self.meta.get("library") == "statsmodels":
            return PYTHON_LITERALS
        return R_LITERALS
