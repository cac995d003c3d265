import math

import pytest

from fortiexporter.metrics import Desc, ValueType, format_value, render_text


@pytest.mark.parametrize(
    "value, text",
    [
        (1e9, "1e+09"),
        (534459022, "5.34459022e+08"),
        (202844842379, "2.02844842379e+11"),
        (0.001, "0.001"),
        (0.357, "0.357"),
        (999, "999"),
        (792806, "792806"),
        (0, "0"),
        (math.nan, "NaN"),
        (math.inf, "+Inf"),
        (-math.inf, "-Inf"),
    ],
)
def test_format_value(value, text):
    assert format_value(value) == text


@pytest.mark.parametrize("value", [0.5, 1.52, 12345.678, 3e10, 7e-8, -42.25])
def test_format_value_roundtrips(value):
    assert float(format_value(value)) == value


def test_metric_labels():
    desc = Desc("fortigate_log_disk_used_bytes", "Disk used bytes for log", ["vdom"])
    metric = desc.metric(ValueType.GAUGE, 7e8, "root")
    assert metric.labels == {"vdom": "root"}
    assert metric.name == "fortigate_log_disk_used_bytes"
    assert metric.value == 7e8


def test_metric_wrong_label_count():
    desc = Desc("fortigate_log_disk_used_bytes", "Disk used bytes for log", ("vdom",))
    with pytest.raises(ValueError):
        desc.metric(ValueType.GAUGE, 1)


def test_render_families_sorted_by_name():
    used = Desc("fortigate_license_vdom_usage", "The amount of VDOM licenses currently used")
    top = Desc("fortigate_license_vdom_max", "The total amount of VDOM licenses available")
    text = render_text([used.metric(ValueType.GAUGE, 114), top.metric(ValueType.GAUGE, 125)])
    assert text == (
        "# HELP fortigate_license_vdom_max The total amount of VDOM licenses available\n"
        "# TYPE fortigate_license_vdom_max gauge\n"
        "fortigate_license_vdom_max 125\n"
        "# HELP fortigate_license_vdom_usage The amount of VDOM licenses currently used\n"
        "# TYPE fortigate_license_vdom_usage gauge\n"
        "fortigate_license_vdom_usage 114\n"
    )


def test_render_labels_and_samples_sorted():
    mode = Desc(
        "fortigate_lb_real_server_mode",
        "Mode of this real server: active, standby or disabled",
        ("vdom", "virtual_server", "id", "mode"),
    )
    metrics = [
        mode.metric(ValueType.GAUGE, v, "root", "LB-EXAMPLE", "1", m)
        for m, v in (("active", 1), ("standby", 0), ("disabled", 0))
    ]
    lines = render_text(metrics).splitlines()
    assert lines[2:] == [
        'fortigate_lb_real_server_mode{id="1",mode="active",vdom="root",virtual_server="LB-EXAMPLE"} 1',
        'fortigate_lb_real_server_mode{id="1",mode="disabled",vdom="root",virtual_server="LB-EXAMPLE"} 0',
        'fortigate_lb_real_server_mode{id="1",mode="standby",vdom="root",virtual_server="LB-EXAMPLE"} 0',
    ]


def test_render_counter_type():
    desc = Desc(
        "fortigate_lb_real_server_processed_bytes_total",
        "Number of bytes processed by this real server",
        ("id",),
    )
    text = render_text([desc.metric(ValueType.COUNTER, 38260, "1")])
    assert "# TYPE fortigate_lb_real_server_processed_bytes_total counter\n" in text
    assert text.endswith('fortigate_lb_real_server_processed_bytes_total{id="1"} 38260\n')


def test_render_escapes_label_values():
    desc = Desc("fortigate_test_info", "Escaping", ("name",))
    text = render_text([desc.metric(ValueType.GAUGE, 1, 'a"b\\c\nd')])
    assert 'fortigate_test_info{name="a\\"b\\\\c\\nd"} 1' in text.splitlines()


def test_render_rejects_duplicates():
    desc = Desc("fortigate_test_info", "Duplicate", ("name",))
    with pytest.raises(ValueError):
        render_text([desc.metric(ValueType.GAUGE, 1, "x"), desc.metric(ValueType.GAUGE, 2, "x")])


def test_render_rejects_inconsistent_family():
    gauge = Desc("fortigate_test_total", "Help", ())
    with pytest.raises(ValueError):
        render_text([gauge.metric(ValueType.GAUGE, 1), gauge.metric(ValueType.COUNTER, 1)])


def test_render_empty():
    assert render_text([]) == ""