from __future__ import annotations

import pytest

from efi_autotest.channels import Channel, injector, lookup, spark
from efi_autotest.errors import UnknownChannel
from efi_autotest.waves.chart import Edge, EdgeKind, EngineChart
from efi_autotest.waves.report import parse_report


def test_chart_is_immutable() -> None:
    chart = parse_report("c1!u!0!c1!d!10!")

    with pytest.raises(TypeError):
        chart.edges_by_channel[Channel.SPARK_2] = ()  # type: ignore[index]
    with pytest.raises(AttributeError):
        chart.window = (0.0, 1.0)  # type: ignore[misc]
    assert isinstance(chart.edges(Channel.SPARK_1), tuple)


def test_source_mapping_changes_do_not_leak() -> None:
    edges = {Channel.SPARK_1: [Edge(Channel.SPARK_1, EdgeKind.RISING, 5.0)]}
    chart = EngineChart(window=(0, 720), edges_by_channel=edges)

    edges[Channel.SPARK_1].append(Edge(Channel.SPARK_1, EdgeKind.FALLING, 9.0))

    assert len(chart.edges(Channel.SPARK_1)) == 1
    assert chart.window == (0.0, 720.0)


def test_absent_and_empty_channels_read_as_silent() -> None:
    chart = EngineChart(edges_by_channel={Channel.INJECTOR_2: ()})

    assert chart.get(Channel.SPARK_1) is None
    assert chart.get(Channel.INJECTOR_2) == ()
    assert chart.is_silent(Channel.SPARK_1)
    assert chart.is_silent(Channel.INJECTOR_2)
    assert Channel.INJECTOR_2 not in chart
    assert list(chart) == []


def test_pulses_skip_edges_cut_by_window() -> None:
    chart = parse_report("c1!d!5!c1!u!100!c1!d!200!c1!u!700!")

    pulses = chart.pulses(Channel.SPARK_1)

    assert len(pulses) == 1
    assert pulses[0].width == 100.0
    assert pulses[0].duty_ratio() == pytest.approx(100.0 / 720.0)
    assert pulses[0].duty_ratio(360.0) == pytest.approx(100.0 / 360.0)


def test_rising_and_falling_accessors() -> None:
    chart = parse_report("c1!u!100!c1!d!200!c1!u!460!c1!d!560!")

    assert [edge.position for edge in chart.rising(Channel.SPARK_1)] == [100.0, 460.0]
    assert [edge.position for edge in chart.falling(Channel.SPARK_1)] == [200.0, 560.0]


def test_edge_kind_opposite() -> None:
    assert EdgeKind.RISING.opposite is EdgeKind.FALLING
    assert EdgeKind.FALLING.opposite is EdgeKind.RISING


def test_channel_registry_lookup() -> None:
    assert lookup("c1") is Channel.SPARK_1
    assert lookup("injector_4") is Channel.INJECTOR_4
    assert lookup(Channel.MAP_AVERAGING) is Channel.MAP_AVERAGING
    assert spark(12) is Channel.SPARK_12
    assert injector(1).wire_name == "i1"
    assert str(Channel.TRIGGER_2) == "t2"


def test_channel_registry_rejects_unknown_names() -> None:
    with pytest.raises(UnknownChannel):
        lookup("c13")
    with pytest.raises(ValueError):
        spark(0)
    with pytest.raises(ValueError):
        injector(13)


def test_channel_cylinder_numbers() -> None:
    assert Channel.SPARK_12.cylinder == 12
    assert injector(3).cylinder == 3
    assert Channel.TRIGGER_1.cylinder is None
    assert Channel.MAP_AVERAGING.cylinder is None
