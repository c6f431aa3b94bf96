"""Tests for Wald and likelihood ratio hurdle tests."""

import numpy as np
import pytest
from scipy import stats

import zlmpy
from zlmpy.backends import EmptyFit, MixedFit, glmer
from zlmpy.errors import FitError, InvalidTestTypeError, UnsupportedLRTError, ZlmWarning
from zlmpy.stats import drop1, linear_hypothesis, zlm_test
from zlmpy.zlm import ZlmModel

METRICS = ["Res.Df", "Df", "Chisq", "Pr(>Chisq)"]


class TestLinearHypothesis:
    def test_single_coefficient_is_squared_z(self, model_a):
        tab = linear_hypothesis(model_a.cont, "group")
        res = model_a.cont.result
        expected = (res.params["group"] / res.bse["group"]) ** 2
        assert list(tab.index) == ["restricted", "full"]
        assert list(tab.columns) == METRICS
        np.testing.assert_allclose(tab.loc["full", "Chisq"], expected)
        np.testing.assert_allclose(tab.loc["full", "Pr(>Chisq)"], stats.chi2.sf(expected, 1))
        assert tab.loc["full", "Df"] == 1
        assert tab.loc["full", "Res.Df"] == model_a.cont.df_resid
        assert tab.loc["restricted", "Res.Df"] == model_a.cont.df_resid + 1
        assert np.isnan(tab.loc["restricted", "Chisq"])

    def test_f_test(self, model_a):
        chisq = linear_hypothesis(model_a.cont, "group").loc["full", "Chisq"]
        tab = linear_hypothesis(model_a.cont, "group", test="F")
        np.testing.assert_allclose(tab.loc["full", "F"], chisq)
        assert "Pr(>F)" in tab.columns

    def test_wrong_test_name(self, model_a):
        with pytest.raises(ValueError, match="test must be"):
            linear_hypothesis(model_a.cont, "group", test="chisq")

    def test_empty_fit(self, model_b):
        with pytest.raises(FitError):
            linear_hypothesis(model_b.cont, "group")


class TestDrop1:
    def test_gaussian_scaled_deviance(self, model_a, gene_a):
        y = gene_a.loc[gene_a["value"] > 0, "value"]
        g = gene_a.loc[gene_a["value"] > 0, "group"]
        rss_full = ((y - y.groupby(g).transform("mean")) ** 2).sum()
        rss_reduced = ((y - y.mean()) ** 2).sum()
        scale = rss_full / (len(y) - 2)

        tab = drop1(model_a.cont, "group")
        assert list(tab.index) == ["<none>", "group"]
        np.testing.assert_allclose(tab.loc["group", "scaled dev."], (rss_reduced - rss_full) / scale)
        assert tab.loc["group", "Df"] == 1
        np.testing.assert_allclose(tab.loc["<none>", "Deviance"], rss_full)

    def test_binomial_lrt(self, model_a):
        tab = drop1(model_a.disc, "group")
        reduced = model_a.disc.update("pos ~ 1")
        np.testing.assert_allclose(tab.loc["group", "LRT"], reduced.deviance - model_a.disc.deviance)
        assert tab.loc["group", "LRT"] >= 0

    def test_unknown_term(self, model_a):
        with pytest.raises(KeyError):
            drop1(model_a.cont, "batch")


class TestWald:
    def test_layout(self, model_a):
        res = zlm_test(model_a, "group")
        assert res.shape == (2, 4, 3)
        assert res.rows == ["restricted", "full"]
        assert res.metrics == METRICS
        assert res.sources == ["disc", "cont", "hurdle"]
        assert not res.cont_failed

    def test_parts_match_linear_hypothesis(self, model_a):
        res = zlm_test(model_a, "group")
        cont = linear_hypothesis(model_a.cont, "group")
        disc = linear_hypothesis(model_a.disc, "group")
        np.testing.assert_allclose(res.cont.to_numpy(), cont.to_numpy())
        np.testing.assert_allclose(res.disc.to_numpy(), disc.to_numpy())

    def test_hurdle_combines_parts(self, model_a):
        res = zlm_test(model_a, "group")
        chisq = res.get("full", "Chisq", "disc") + res.get("full", "Chisq", "cont")
        assert res.get("full", "Df", "hurdle") == 2
        np.testing.assert_allclose(res.get("full", "Chisq", "hurdle"), chisq)
        np.testing.assert_allclose(res.get("full", "Pr(>Chisq)", "hurdle"), stats.chi2.sf(chisq, 2))

    def test_tested_row(self, model_a):
        tested = zlm_test(model_a, "group").tested()
        assert list(tested.index) == ["Df", "Chisq", "Pr(>Chisq)"]
        assert list(tested.columns) == ["disc", "cont", "hurdle"]
        assert tested.loc["Df", "hurdle"] == 2

    def test_empty_continuous_contributes_zero(self, model_b):
        res = zlm_test(model_b, "group")
        assert res.cont_failed
        cont = res.cont
        assert (cont[["Res.Df", "Df", "Chisq"]].to_numpy() == 0).all()
        assert cont["Pr(>Chisq)"].isna().all()

        disc_chisq = res.get("full", "Chisq", "disc")
        assert np.isfinite(disc_chisq)
        np.testing.assert_allclose(res.get("full", "Chisq", "hurdle"), disc_chisq)
        assert res.get("full", "Df", "hurdle") == 1
        np.testing.assert_allclose(
            res.get("full", "Pr(>Chisq)", "hurdle"), res.get("full", "Pr(>Chisq)", "disc")
        )

    def test_warns_when_not_silent(self, model_b):
        with pytest.warns(ZlmWarning, match="Continuous test failed"):
            zlm_test(model_b, "group", silent=False)

    def test_mismatched_continuous_shape(self, model_a, monkeypatch):
        def lopsided(fit, hypothesis, **kwargs):
            tab = linear_hypothesis(fit, hypothesis, **kwargs)
            if fit is model_a.cont:
                tab.loc["extra"] = tab.loc["full"]
            return tab

        monkeypatch.setattr("zlmpy.stats.linear_hypothesis", lopsided)
        res = zlm_test(model_a, "group")
        assert res.cont_failed
        assert res.shape == (2, 4, 3)
        assert (res.cont[["Df", "Chisq"]].to_numpy() == 0).all()
        assert res.cont["Pr(>Chisq)"].isna().all()
        np.testing.assert_allclose(res.get("full", "Chisq", "hurdle"), res.get("full", "Chisq", "disc"))

    def test_contrast_matrix(self, model_a):
        by_name = zlm_test(model_a, "group")
        by_matrix = zlm_test(model_a, np.array([[0.0, 1.0]]))
        np.testing.assert_allclose(by_matrix.values, by_name.values)


class TestLRT:
    def test_matches_drop1(self, model_a):
        res = zlm_test(model_a, "group", type="LRT")
        assert res.rows == ["<none>", "group"]
        assert res.metrics == METRICS
        np.testing.assert_allclose(
            res.get("group", "Chisq", "cont"), drop1(model_a.cont, "group").loc["group", "scaled dev."]
        )
        np.testing.assert_allclose(
            res.get("group", "Chisq", "disc"), drop1(model_a.disc, "group").loc["group", "LRT"]
        )
        assert np.isnan(res.get("<none>", "Res.Df", "disc"))

    def test_hurdle_combines_parts(self, model_a):
        res = zlm_test(model_a, "group", type="LRT")
        chisq = res.get(1, "Chisq", "disc") + res.get(1, "Chisq", "cont")
        np.testing.assert_allclose(res.get(1, "Pr(>Chisq)", "hurdle"), stats.chi2.sf(chisq, 2))

    def test_empty_continuous(self, model_b):
        res = zlm_test(model_b, "group", type="LRT")
        assert res.cont_failed
        assert res.get(1, "Df", "cont") == 0
        assert np.isnan(res.get(1, "Pr(>Chisq)", "cont"))
        np.testing.assert_allclose(res.get(1, "Chisq", "hurdle"), res.get(1, "Chisq", "disc"))

    def test_single_term_list(self, model_a):
        res = zlm_test(model_a, ["group"], type="LRT")
        assert res.rows == ["<none>", "group"]

    def test_multiple_terms_rejected(self, model_a):
        with pytest.raises(UnsupportedLRTError, match="single factors"):
            zlm_test(model_a, ["group", "batch"], type="LRT")

    def test_requires_drop_term_backend(self, model_a):
        model = ZlmModel(cont=model_a.cont, disc=EmptyFit(family="binomial"), formula=model_a.formula)
        with pytest.raises(UnsupportedLRTError, match="glm fits"):
            zlm_test(model, "group", type="LRT")


@pytest.mark.parametrize("type", ["wald", "F", "", None])
def test_invalid_type(model_a, type):
    with pytest.raises(InvalidTestTypeError):
        zlm_test(model_a, "group", type=type)


class TestMixedEffects:
    @pytest.fixture()
    def mixed_model(self, donor_table):
        fit = glmer("y ~ x + (1 | donor)", donor_table)
        return ZlmModel(cont=fit, disc=fit, formula=fit.formula)

    def test_metric_names_normalized(self, mixed_model):
        res = zlm_test(mixed_model, "x")
        assert res.metrics == METRICS
        chisq = res.get("full", "Chisq", "cont")
        np.testing.assert_allclose(res.get("full", "Chisq", "hurdle"), 2 * chisq)
        np.testing.assert_allclose(res.get("full", "Pr(>Chisq)", "hurdle"), stats.chi2.sf(2 * chisq, 2))

    def test_lrt_not_supported(self, mixed_model):
        with pytest.raises(UnsupportedLRTError):
            zlm_test(mixed_model, "x", type="LRT")

    def test_glmer_hurdle(self, zero_inflated_donor_table):
        model = zlmpy.zlm("y ~ x + (1 | donor)", zero_inflated_donor_table, fit_fn=glmer)
        assert isinstance(model.disc, MixedFit)
        assert model.disc.family == "binomial"
        assert list(model.disc.coef.index) == ["Intercept", "x"]
        assert model.disc.cov_params.shape == (2, 2)
        assert isinstance(model.cont, MixedFit)
        assert model.cont.family == "gaussian"

        res = zlm_test(model, "x")
        assert res.metrics == METRICS
        chisq = res.get("full", "Chisq", "disc") + res.get("full", "Chisq", "cont")
        assert np.isfinite(chisq)
        np.testing.assert_allclose(res.get("full", "Chisq", "hurdle"), chisq)
        np.testing.assert_allclose(res.get("full", "Pr(>Chisq)", "hurdle"), stats.chi2.sf(chisq, 2))


def test_exported(model_a):
    assert zlmpy.zlm_test is zlm_test
    res = zlmpy.zlm_test(model_a, "group")
    assert "hurdle" in repr(res)
