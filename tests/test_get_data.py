import warnings
from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from sensible_insight import (
    GuessedDataWarning,
    ModelDataWarning,
    ModelHandle,
    get_data,
    merge_frames,
    resolve_fit_data,
)


def _df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "y": [1.0, 2.0, 3.5, 4.0, 5.5],
            "a": [0.1, 0.4, 0.2, 0.9, 0.5],
            "b": [1, 0, 1, 0, 1],
            "c": [3.0, 2.0, 1.0, 2.0, 3.0],
            "g": [1, 1, 2, 2, 3],
        }
    )


def _columns(frame: pd.DataFrame) -> list:
    return list(frame.columns)


def test_snapshot_is_projected_onto_model_variables():
    df = _df()
    model = ModelHandle(model_class="lm", formula="y ~ a + b", data=df)

    out = get_data(model)

    assert _columns(out) == ["y", "a", "b"]
    assert len(out) == len(df)
    assert out.to_dict("list") == df[["y", "a", "b"]].to_dict("list")
    assert out.attrs["source"] == "source"


def test_call_is_evaluated_in_captured_environment():
    study = _df()
    model = ModelHandle.capture("lm", formula="y ~ a", call={"data": "study"})

    out = get_data(model)

    assert _columns(out) == ["y", "a"]
    assert out["a"].tolist() == study["a"].tolist()


@pytest.mark.parametrize("expr", ["study.data", 'frames["w1"]'])
def test_call_expressions(expr):
    df = _df()
    env = {"study": SimpleNamespace(data=df), "frames": {"w1": df}}
    model = ModelHandle(model_class="lm", formula="y ~ c", call={"data": expr}, environment=env)
    assert _columns(get_data(model)) == ["y", "c"]


def test_snapshot_is_isolated_from_later_mutation():
    df = _df()
    model = ModelHandle.capture("lm", formula="y ~ a", data=df)
    df["a"] = 0.0

    assert get_data(model)["a"].tolist() == [0.1, 0.4, 0.2, 0.9, 0.5]


def test_stored_frame_names_are_detransformed():
    frame = pd.DataFrame({"y": [1.0, 2.0], "log(a)": [0.0, 0.7], "b": [1, 2]})
    model = ModelHandle(
        model_class="lm", formula="y ~ log(a) + b", frames={"conditional": frame}
    )

    out = get_data(model)

    assert _columns(out) == ["y", "a", "b"]
    # values stay as stored; only the name changes
    assert out["a"].tolist() == [0.0, 0.7]
    assert out.attrs["source"] == "frame"


def test_transformed_name_kept_when_bare_name_is_taken():
    frame = pd.DataFrame({"y": [1.0, 2.0], "a": [1.0, 2.0], "log(a)": [0.0, 0.7]})
    model = ModelHandle(
        model_class="lm", formula="y ~ a + log(a)", frames={"conditional": frame}
    )
    assert _columns(get_data(model)) == ["y", "a", "log(a)"]


def test_duplicate_names_after_detransform_keep_first():
    frame = pd.DataFrame({"y": [1.0, 2.0], "log(a)": [0.0, 0.7], "sqrt(a)": [1.0, 1.4]})
    model = ModelHandle(
        model_class="lm", formula="y ~ log(a) + sqrt(a)", frames={"conditional": frame}
    )

    out = get_data(model)

    assert _columns(out) == ["y", "a"]
    assert out["a"].tolist() == [0.0, 0.7]


def test_na_omit_models_drop_incomplete_rows():
    df = _df()
    df.loc[2, "a"] = np.nan

    kept = get_data(ModelHandle(model_class="lm", formula="y ~ a", data=df))
    dropped = get_data(ModelHandle(model_class="gls", formula="y ~ a", data=df))

    assert len(kept) == 5
    assert len(dropped) == 4
    assert not dropped.isna().any().any()


def test_namespace_guess_warns():
    df = _df()
    namespace = {"other": pd.DataFrame({"q": [1]}), "mydata": df}
    model = ModelHandle(model_class="MCMCglmm", formula="y ~ a + c")

    with pytest.warns(GuessedDataWarning, match="guessed"):
        out = get_data(model, namespace=namespace)

    assert _columns(out) == ["y", "a", "c"]
    assert out.attrs["source"] == "namespace"


def test_namespace_guess_is_silent_when_not_verbose():
    model = ModelHandle(model_class="MCMCglmm", formula="y ~ a")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        out = get_data(model, verbose=False, namespace={"mydata": _df()})
    assert _columns(out) == ["y", "a"]


def test_unrecoverable_data_warns_and_returns_none():
    model = ModelHandle(model_class="lm", formula="y ~ a")
    with pytest.warns(ModelDataWarning, match="Could not recover"):
        assert get_data(model) is None

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert get_data(model, verbose=False) is None


def test_empty_table_is_reported_as_none():
    model = ModelHandle(model_class="lm", formula="y ~ a", data=_df().iloc[:0])
    with pytest.warns(ModelDataWarning):
        assert get_data(model) is None


def test_missing_environment_name_is_not_an_error():
    model = ModelHandle(
        model_class="lm", formula="y ~ a", call={"data": "gone"}, environment={}
    )
    with pytest.warns(ModelDataWarning, match="gone"):
        assert get_data(model) is None


def test_zero_inflated_component_selection():
    df = _df()
    model = ModelHandle(
        model_class="zeroinfl",
        formula="y ~ a + b | c",
        frames={"conditional": df[["y", "a", "b"]], "zero_inflated": df[["c"]]},
    )

    assert _columns(get_data(model)) == ["y", "a", "b", "c"]
    assert _columns(get_data(model, component="zi")) == ["c"]
    assert _columns(get_data(model, component="conditional")) == ["y", "a", "b"]


def test_frame_merge_last_wins():
    first = pd.DataFrame({"v": [1, 2], "w": [3, 4]})
    second = pd.DataFrame({"v": [9, 8], "z": [0, 0]})

    merged = merge_frames(first, second)
    assert _columns(merged) == ["v", "w", "z"]
    assert merged["v"].tolist() == [9, 8]

    kept = merge_frames(first, second, replace=False)
    assert kept["v"].tolist() == [1, 2]
    assert merge_frames(None, second).equals(second)


def _mixmod() -> ModelHandle:
    return ModelHandle(
        model_class="MixMod",
        formula={"conditional": "y ~ x", "zero_inflated": "~ z"},
        frames={
            "fixed": pd.DataFrame({"y": [0, 1, 3, 0], "x": [0.5, 1.5, 2.5, 3.5]}),
            "zi_fixed": pd.DataFrame({"z": [1, 0, 0, 1]}),
        },
        call={"id": "subject"},
        id=[1, 1, 2, 2],
        id_name="id",
    )


def test_id_column_named_after_call_argument():
    out = get_data(_mixmod())

    assert _columns(out) == ["y", "x", "z", "subject"]
    assert out["subject"].tolist() == [1, 1, 2, 2]
    assert _columns(get_data(_mixmod(), effects="fixed")) == ["y", "x", "z"]
    assert _columns(get_data(_mixmod(), effects="random")) == ["subject"]


def test_random_slopes_are_kept():
    df = _df()
    model = ModelHandle(model_class="lmerMod", formula="y ~ a + (b | g)", data=df)

    assert _columns(get_data(model)) == ["y", "a", "g", "b"]
    assert _columns(get_data(model, effects="random")) == ["g", "b"]
    assert _columns(get_data(model, effects="fixed")) == ["y", "a"]


def test_augment_adds_missing_variables_from_source():
    df = _df()
    model = ModelHandle(
        model_class="ivreg",
        formula="y ~ a | c",
        frames={"conditional": df[["y", "a"]]},
        data=df,
    )

    out = get_data(model)

    assert _columns(out) == ["y", "a", "c"]
    assert out.attrs["source"] == "augment"


def test_wrapper_delegates_to_inner_model():
    inner = ModelHandle(model_class="glm", formula="y ~ a", data=_df())
    model = ModelHandle(model_class="logitmfx", inner={"fit": inner})
    assert _columns(get_data(model)) == ["y", "a"]

    with pytest.warns(ModelDataWarning, match="wraps no"):
        assert get_data(ModelHandle(model_class="logitmfx")) is None


def test_submodel_frames_are_merged():
    df = _df()
    model = ModelHandle(
        model_class="mediate",
        inner={
            "model.m": ModelHandle(model_class="lm", formula="a ~ b", data=df),
            "model.y": ModelHandle(model_class="lm", formula="y ~ a + b", data=df),
        },
    )

    out = get_data(model)

    assert set(out.columns) == {"a", "b", "y"}
    assert len(out) == len(df)


def test_unsupported_model_class_warns():
    with pytest.warns(ModelDataWarning, match="merModList"):
        assert get_data(ModelHandle(model_class="merModList")) is None


def test_repeated_calls_give_the_same_table():
    model = ModelHandle(model_class="lm", formula="y ~ a + b", data=_df())
    first = get_data(model)
    second = resolve_fit_data(model)
    assert first.equals(second)


def test_invalid_selectors_raise():
    model = ModelHandle(model_class="lm", formula="y ~ a", data=_df())
    with pytest.raises(ValueError, match="Invalid effects"):
        get_data(model, effects="both")
    with pytest.raises(ValueError, match="Invalid component"):
        get_data(model, component="ip")


def test_data_frames_pass_through():
    df = _df()
    assert get_data(df) is df


def test_model_average_merges_every_component_model():
    df = _df()
    model = ModelHandle(
        model_class="averaging",
        inner={
            "m1": ModelHandle(model_class="lm", formula="y ~ a", data=df),
            "m2": ModelHandle(model_class="lm", formula="y ~ b", data=df),
            "m3": ModelHandle(model_class="lm", formula="y ~ a + c", data=df),
        },
    )

    out = get_data(model)

    assert set(out.columns) == {"y", "a", "b", "c"}
    assert len(out) == len(df)
    assert out.attrs["source"] == "submodels"


def test_model_average_without_model_list_warns():
    with pytest.warns(ModelDataWarning, match="stores no sub-models"):
        assert get_data(ModelHandle(model_class="averaging")) is None


def test_model_average_falls_back_to_source_data():
    df = _df()
    failing = ModelHandle(model_class="lm", formula="y ~ a")
    model = ModelHandle(model_class="averaging", formula="y ~ a", data=df, inner={"m1": failing})

    with pytest.warns(ModelDataWarning):
        out = get_data(model)

    assert _columns(out) == ["y", "a"]
    assert out.attrs["source"] == "source"


def test_likelihood_models_use_stored_data_list():
    model = ModelHandle(
        model_class="mle2",
        frames={"data": {"x": [1.0, 2.0, 3.0], "n": [10, 10, 12]}},
    )

    out = get_data(model)

    assert _columns(out) == ["x", "n"]
    assert out["n"].tolist() == [10, 10, 12]
    assert _columns(get_data(ModelHandle(model_class="mle", frames=model.frames))) == ["x", "n"]
