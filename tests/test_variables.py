import pytest

from sensible_insight import (
    ModelHandle,
    find_formula,
    find_random,
    find_response,
    find_variables,
)


def _glmmtmb() -> ModelHandle:
    return ModelHandle(
        model_class="glmmTMB",
        formula={
            "conditional": "count ~ mined + (1 | site)",
            "zero_inflated": "~ mined + (1 | spp)",
            "dispersion": "~ DOY",
        },
    )


def test_variables_by_role():
    assert find_variables(_glmmtmb()) == {
        "response": ["count"],
        "conditional": ["mined"],
        "dispersion": ["DOY"],
        "random": ["site"],
        "zero_inflated": ["mined"],
        "zero_inflated_random": ["spp"],
    }


def test_flatten_lists_each_variable_once():
    assert find_variables(_glmmtmb(), flatten=True) == ["count", "mined", "DOY", "site", "spp"]


def test_effects_filter():
    fixed = find_variables(_glmmtmb(), effects="fixed")
    assert "random" not in fixed and "zero_inflated_random" not in fixed
    assert find_variables(_glmmtmb(), effects="random") == {
        "random": ["site"],
        "zero_inflated_random": ["spp"],
    }
    assert find_random(_glmmtmb(), flatten=True) == ["site", "spp"]


def test_component_filter():
    assert find_variables(_glmmtmb(), component="zi") == {
        "zero_inflated": ["mined"],
        "zero_inflated_random": ["spp"],
    }
    assert find_variables(_glmmtmb(), component="dispersion", flatten=True) == ["DOY"]
    assert find_variables(_glmmtmb(), component="instruments") == {}


def test_invalid_selectors_raise():
    with pytest.raises(ValueError, match="Invalid effects"):
        find_variables(_glmmtmb(), effects="mixed")
    with pytest.raises(ValueError, match="Invalid component"):
        find_variables(_glmmtmb(), component="ip")


def test_bar_parts_split_by_model_class():
    model = ModelHandle(model_class="zeroinfl", formula="art ~ fem + mar | kid5")
    assert find_formula(model) == {
        "conditional": "art ~ fem + mar",
        "zero_inflated": "~ kid5",
    }
    assert find_variables(model) == {
        "response": ["art"],
        "conditional": ["fem", "mar"],
        "zero_inflated": ["kid5"],
    }

    iv = ModelHandle(model_class="ivreg", formula="y ~ x + w | w + z")
    assert find_variables(iv, component="instruments", flatten=True) == ["w", "z"]


def test_bar_kept_for_models_without_bar_parts():
    model = ModelHandle(model_class="lm", formula="y ~ x | g")
    assert find_formula(model) == {"conditional": "y ~ x | g"}


def test_transformed_terms_report_source_variables():
    model = ModelHandle(model_class="lm", formula="y ~ log(x) + poly(x, 2) + I(z^2) + s(t)")
    assert find_variables(model) == {
        "response": ["y"],
        "conditional": ["x", "z"],
        "smooth_terms": ["t"],
    }


def test_response():
    model = ModelHandle(model_class="glm", formula="cbind(k, n - k) ~ x")
    assert find_response(model) == "cbind(k, n - k)"
    assert find_response(model, combine=False) == ["k", "n"]
    assert find_response(ModelHandle(model_class="lm", formula="~ x")) is None


def test_separate_random_formula():
    model = ModelHandle(
        model_class="lme",
        formula={"conditional": "distance ~ age", "random": "~ 1 | Subject"},
    )
    assert find_random(model) == {"random": ["Subject"]}


def test_grouping_id_named_as_written_in_call():
    model = ModelHandle(
        model_class="gee",
        formula="y ~ x",
        call={"data": "df", "id": "subject"},
        id=[1, 1, 2, 2],
        id_name="id",
    )
    assert find_random(model, flatten=True) == ["subject"]


def test_unknown_objects_raise_type_error():
    with pytest.raises(TypeError, match="Cannot introspect"):
        find_variables(object())


def test_r_constants_are_variables_in_python_formulas():
    r_model = ModelHandle(model_class="lm", formula="y ~ x + T")
    py_model = ModelHandle(model_class="OLS", formula="y ~ x + T", meta={"library": "statsmodels"})

    assert find_variables(r_model, flatten=True) == ["y", "x"]
    assert find_variables(py_model, flatten=True) == ["y", "x", "T"]


def test_removed_terms_are_not_variables():
    model = ModelHandle(model_class="lm", formula="y ~ a + b - b")
    assert find_variables(model, flatten=True) == ["y", "a"]
