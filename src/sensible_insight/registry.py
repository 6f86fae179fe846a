"""Model-type descriptors + registry.

Every supported model class maps to a small declarative `ModelSpec`. The
generic resolvers in `parameters` and `data` interpret the spec; there is no
per-class code.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Tuple

from .roles import ROLES

__all__ = [
    "ModelSpec",
    "TACTICS",
    "get_model_spec",
    "register_model_spec",
    "AVAILABLE_MODEL_SPECS",
]

TACTICS = ("frame", "augment", "source", "namespace")


@dataclass(frozen=True)
class ModelSpec:
    name: str
    # ---- parameter roles ----
    # Checked in order; the first matching prefix wins.
    parameter_prefixes: Tuple[Tuple[str, str], ...] = ()
    # Exact coefficient name -> role, checked before prefixes.
    parameter_names: Mapping[str, str] = field(default_factory=dict)
    # Structural coefficient container -> role.
    parameter_parts: Mapping[str, str] = field(default_factory=dict)
    # Role of everything not matched above.
    remainder_role: str = "conditional"
    # ---- variables ----
    # Roles of the 2nd, 3rd, ... `|`-separated parts of a one-string formula.
    bar_roles: Tuple[str, ...] = ()
    # Role of the handle's id/grouping variable, if the model stores one.
    id_role: Optional[str] = None
    # ---- data recovery ----
    tactics: Tuple[str, ...] = ("frame", "source")
    # Stored frames to merge, in order; None merges every stored frame.
    frame_parts: Optional[Tuple[str, ...]] = None
    # "replace": later frames override same-named columns; "keep": only new columns are added.
    merge: str = "replace"
    na_omit: bool = False
    # Append the stored id values as the last column.
    id_column: bool = False
    # Resolve data through a wrapped model instead (handle.inner[delegate]).
    delegate: Optional[str] = None
    # Merge the data of several wrapped models (handle.inner keys; "*" takes all of them).
    submodels: Tuple[str, ...] = ()
    # Data cannot be recovered for this class; the message is emitted as a warning.
    unsupported: Optional[str] = None
    doc: str = ""

    def __post_init__(self) -> None:
        roles = (
            [r for _, r in self.parameter_prefixes]
            + list(self.parameter_names.values())
            + list(self.parameter_parts.values())
            + [self.remainder_role]
        )
        bad = [r for r in roles if r not in ROLES]
        if bad:
            raise ValueError(f"Unknown parameter role(s) {bad!r} in spec {self.name!r}.")
        bad_tactics = [t for t in self.tactics if t not in TACTICS]
        if bad_tactics:
            raise ValueError(
                f"Unknown tactic(s) {bad_tactics!r} in spec {self.name!r}. Available: {TACTICS}"
            )
        if self.merge not in ("replace", "keep"):
            raise ValueError(f"merge must be 'replace' or 'keep', got {self.merge!r}.")


_SPECS: Dict[str, ModelSpec] = {}


def register_model_spec(spec: ModelSpec, *aliases: str) -> ModelSpec:
    """Register `spec` under its name (and any aliases), replacing existing entries."""
    _SPECS[spec.name] = spec
    for alias in aliases:
        _SPECS[alias] = replace(spec, name=alias)
    return spec


def get_model_spec(name: str) -> ModelSpec:
    """Return the spec for a model class, or the default spec if unknown."""
    return _SPECS.get(name, _SPECS["default"])


# ---- built-in table -------------------------------------------------------

register_model_spec(
    ModelSpec(name="default", doc="Stored frame, then the captured source data."),
    "lm", "glm", "gam", "gamm", "biglm", "bigglm", "vglm", "mlogit", "bracl", "gmnl", "gbm",
    # statsmodels
    "OLS", "WLS", "GLS", "GLSAR", "GLM", "Logit", "Probit", "Poisson", "MNLogit",
    "QuantReg", "RLM", "OrderedModel",
)

register_model_spec(
    ModelSpec(name="NegativeBinomial", parameter_names={"alpha": "auxiliary"}),
    "GeneralizedPoisson", "NegativeBinomialP",
)

register_model_spec(
    ModelSpec(
        name="zeroinfl",
        parameter_prefixes=(("count_", "conditional"), ("zero_", "zero_inflated")),
        remainder_role="auxiliary",
        bar_roles=("zero_inflated",),
        frame_parts=("conditional", "zero_inflated"),
        doc="pscl-style count/zero models; `y ~ count | zero` formulas.",
    ),
    "hurdle", "zerotrunc",
)

register_model_spec(
    ModelSpec(
        name="ZeroInflatedPoisson",
        parameter_prefixes=(("inflate_", "zero_inflated"),),
        parameter_names={"alpha": "auxiliary"},
        tactics=("source",),
    ),
    "ZeroInflatedNegativeBinomialP", "ZeroInflatedGeneralizedPoisson",
)

register_model_spec(
    ModelSpec(
        name="HurdleCountModel",
        parameter_prefixes=(("zm_", "zero_inflated"), ("hm_", "conditional")),
        remainder_role="auxiliary",
        tactics=("source",),
    )
)

register_model_spec(
    ModelSpec(
        name="BetaModel",
        parameter_prefixes=(("precision-", "dispersion"),),
        tactics=("source",),
    )
)

register_model_spec(
    ModelSpec(
        name="zcpglm",
        parameter_parts={"tweedie": "conditional", "zero": "zero_inflated"},
        bar_roles=("zero_inflated",),
        frame_parts=("tweedie", "zero"),
        merge="keep",
        na_omit=True,
        tactics=("frame",),
        doc="Zero-inflated compound Poisson; both parts store their own frame.",
    )
)

register_model_spec(
    ModelSpec(
        name="mhurdle",
        parameter_prefixes=(
            ("h2.", "conditional"),
            ("h1.", "zero_inflated"),
            ("h3.", "infrequent_purchase"),
        ),
        remainder_role="auxiliary",
        bar_roles=("zero_inflated", "infrequent_purchase"),
        frame_parts=("model",),
        tactics=("frame",),
    )
)

register_model_spec(
    ModelSpec(
        name="glmmTMB",
        parameter_parts={
            "cond": "conditional",
            "zi": "zero_inflated",
            "disp": "dispersion",
            "random": "random",
        },
        frame_parts=("conditional", "zero_inflated", "dispersion"),
    )
)

register_model_spec(
    ModelSpec(
        name="merMod",
        parameter_parts={"fixed": "conditional", "random": "random"},
    ),
    "lmerMod", "glmerMod", "rlmerMod", "clmm", "cpglmm", "HLfit", "glmm", "mixed", "wbm",
    "felm", "bife",
)

register_model_spec(
    ModelSpec(
        name="MixedLM",
        parameter_parts={"fe": "conditional", "re": "random"},
        id_role="random",
        tactics=("source",),
        na_omit=True,
    )
)

register_model_spec(
    ModelSpec(
        name="MixMod",
        parameter_parts={
            "fixed": "conditional",
            "zi_fixed": "zero_inflated",
            "random": "random",
        },
        frame_parts=("fixed", "random", "zi_fixed", "zi_random"),
        id_column=True,
        id_role="random",
        tactics=("frame",),
        doc="GLMMadaptive-style: one frame per part, grouping id stored separately.",
    )
)

register_model_spec(
    ModelSpec(name="lme", tactics=("source",), na_omit=True)
)

register_model_spec(
    ModelSpec(name="gls", tactics=("source",), na_omit=True),
    "nls", "gnls", "survfit", "aareg", "complmrob", "nlrq", "robmixglm", "selection",
    "tobit", "rqss", "sem", "lavaan", "blavaan", "rma", "metaplus", "ivFixed",
    "coxph", "mjoint", "lqmm",
)

register_model_spec(
    ModelSpec(name="gee", id_role="random", tactics=("source",), na_omit=True),
    "LORgee", "BBmm", "GEE", "NominalGEE", "OrdinalGEE",
)

register_model_spec(
    ModelSpec(name="geeglm", id_column=True, id_role="random", tactics=("frame",)),
    "mixor",
)

register_model_spec(
    ModelSpec(
        name="clmm2",
        frame_parts=("location", "scale"),
        merge="keep",
        id_column=True,
        id_role="random",
        tactics=("frame",),
    )
)

register_model_spec(
    ModelSpec(name="clm2", frame_parts=("location", "scale"), merge="keep", tactics=("frame",)),
    "gamlss",
)

register_model_spec(
    ModelSpec(
        name="glmmadmb",
        frame_parts=("fixed",),
        tactics=("augment",),
        doc="Fixed-effects frame stored; grouping variables come from the source data.",
    )
)

register_model_spec(
    ModelSpec(
        name="ivreg",
        bar_roles=("instruments",),
        tactics=("augment", "source"),
        na_omit=True,
    ),
    "iv_robust", "IV2SLS", "IVGMM", "IVLIML",
)

register_model_spec(
    ModelSpec(name="fixest", bar_roles=("cluster",), tactics=("source", "frame")),
    "feglm", "feis", "Feols", "Fepois", "Feiv", "PanelOLS", "RandomEffects", "plm", "pgmm",
)

register_model_spec(
    ModelSpec(
        name="brmsfit",
        parameter_prefixes=(
            ("b_zi_", "zero_inflated"),
            ("b_sigma_", "dispersion"),
            ("b_", "conditional"),
            ("sd_", "random"),
            ("cor_", "random"),
            ("r_", "random"),
            ("bs_", "smooth_terms"),
            ("sds_", "smooth_terms"),
            ("s_", "smooth_terms"),
        ),
        parameter_names={"sigma": "dispersion", "shape": "dispersion", "zi": "zero_inflated"},
        remainder_role="auxiliary",
        frame_parts=("conditional",),
    )
)

register_model_spec(
    ModelSpec(
        name="stanreg",
        parameter_prefixes=(("b[", "random"), ("Sigma[", "random")),
        parameter_names={"sigma": "auxiliary"},
        frame_parts=("conditional",),
    ),
    "stanmvreg",
)

register_model_spec(
    ModelSpec(
        name="MCMCglmm",
        tactics=("namespace",),
        doc="The fitted object keeps no data; guess from the interactive namespace.",
    )
)

register_model_spec(
    ModelSpec(name="betamfx", delegate="fit"),
    "betaor", "logitor", "poissonirr", "negbinirr", "logitmfx", "poissonmfx",
    "probitmfx", "negbinmfx", "model_fit",
)

register_model_spec(ModelSpec(name="glht", delegate="model"))

register_model_spec(ModelSpec(name="mediate", submodels=("model.m", "model.y")))

register_model_spec(
    ModelSpec(
        name="averaging",
        submodels=("*",),
        tactics=("source",),
        doc="Model averages merge the data of every stored component model.",
    )
)

register_model_spec(
    ModelSpec(name="mle2", frame_parts=("data",), tactics=("frame",)),
    "mle",
)

register_model_spec(
    ModelSpec(name="merModList", unsupported="Can't access data for `merModList` objects.")
)

register_model_spec(
    ModelSpec(name="mcmc.list", unsupported="Can't access data for `mcmc.list` objects.")
)

AVAILABLE_MODEL_SPECS = tuple(sorted(_SPECS))
