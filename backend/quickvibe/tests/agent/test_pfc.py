from quickvibe.agent import pfc


def test_context_percentage_is_rounded():
    assert pfc.context_percentage(0) == 0
    assert pfc.context_percentage(2_000) == 1.0
    assert pfc.context_percentage(1_234) == 0.62


def test_savings_assume_eighty_percent_reduction():
    assert pfc.estimate_traditional_tokens(1_000) == 5_000
    assert pfc.pfc_savings(1_000) == 4_000


def test_compute_metrics_prefers_reported_savings():
    metrics = pfc.compute_metrics(1_000)
    assert metrics.pfc_saved == 4_000
    assert metrics.traditional_cost == 5_000
    assert metrics.actual_cost == 1_000
    assert metrics.context_percentage == 0.5

    assert pfc.compute_metrics(1_000, saved_tokens=42).pfc_saved == 42


def test_plan_limits():
    assert pfc.token_limit_for_plan("FREE") == 10_000
    assert pfc.token_limit_for_plan("ENTERPRISE") == 2_000_000
    assert pfc.token_limit_for_plan("UNKNOWN") == 0
