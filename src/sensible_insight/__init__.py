"""sensible_insight public API."""
from .adapters import as_handle, from_statsmodels
from .data import get_data, merge_frames, resolve_fit_data
from .errors import GuessedDataWarning, ModelDataWarning
from .formula import clean_names
from .handle import ModelHandle
from .parameters import find_parameters, resolve_parameter_names
from .registry import ModelSpec, get_model_spec, register_model_spec
from .roles import ROLES
from .variables import find_formula, find_random, find_response, find_variables

__all__ = [
    "ModelHandle",
    "ModelSpec",
    "ROLES",
    "as_handle",
    "from_statsmodels",
    "find_parameters",
    "resolve_parameter_names",
    "get_data",
    "resolve_fit_data",
    "find_variables",
    "find_formula",
    "find_response",
    "find_random",
    "clean_names",
    "merge_frames",
    "get_model_spec",
    "register_model_spec",
    "ModelDataWarning",
    "GuessedDataWarning",
]
