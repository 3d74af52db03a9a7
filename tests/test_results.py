from device_metrics.results import PerformanceResult, StatSummary, fill_summary, max_or_none


def test_fill_summary_sets_avg_min_max():
    s = StatSummary()
    assert fill_summary(s, [10.0, 50.0, 30.0], 2)
    assert (s.avg, s.min, s.max) == (30.0, 10.0, 50.0)


def test_fill_summary_rounds_average_only():
    s = StatSummary()
    fill_summary(s, [1000.0, 100.0, 200.0], 2)
    assert s.avg == 433.33
    assert s.min == 100.0 and s.max == 1000.0


def test_fill_summary_empty_leaves_target():
    s = StatSummary(avg=1.0, min=1.0, max=1.0)
    assert fill_summary(s, [], 2) is False
    assert s == StatSummary(avg=1.0, min=1.0, max=1.0)


def test_max_or_none():
    assert max_or_none([]) is None
    assert max_or_none([1.5, 2.25, 2.0]) == 2.25


def test_default_tree_is_zeroed_and_subtrees_are_distinct():
    a, b = PerformanceResult(), PerformanceResult()
    assert a.cpu.total_cpu_percentage is not b.cpu.total_cpu_percentage
    assert a.network.network_speed.mobile_speed.total is not a.network.network_speed.wifi_speed.total
    d = a.as_dict()
    assert set(d) == {'cpu', 'ram', 'network', 'battery', 'frames'}
    assert d['cpu']['total_cpu_percentage'] == {'avg': 0.0, 'min': 0.0, 'max': 0.0}
    assert d['network']['network_total']['wifi_total']['application'] == {'rx_bytes': 0.0, 'tx_bytes': 0.0}
    assert d['network']['network_speed']['mobile_speed']['total']['rx_bytes_per_sec']['avg'] == 0.0
    assert d['battery'] == {'application_mah': 0.0}
    assert d['frames'] == {'application_rendered_frames': 0.0, 'application_janky_frames': 0.0}
