import pytest

from dctop.model import ContainerCollection, CpuCounters, MemoryUsage
from dctop.stats import (
    PLACEHOLDER, TotalStats, cpu_percent_text, cpu_usage_percent, format_network_rate, memory_usage_percent,
    network_rate, resource_usage_text, scale_byte_rate, total_stats_summary, total_stats_text,
)

MIB = 1 << 20
GIB = 1 << 30


def test_cpu_usage_percent():
    cur = CpuCounters(container_usage=200, system_usage=2000)
    prev = CpuCounters(container_usage=100, system_usage=1000)
    assert cpu_usage_percent(cur, prev) == pytest.approx(10.0)


def test_cpu_usage_undefined_without_system_ticks():
    same = CpuCounters(container_usage=100, system_usage=1000)
    assert cpu_usage_percent(same, same) is None
    assert cpu_percent_text(None).strip() == PLACEHOLDER


def test_memory_usage_percent():
    assert memory_usage_percent(MemoryUsage(usage=512 * MIB, limit=GIB)) == pytest.approx(50.0)
    assert memory_usage_percent(MemoryUsage(usage=512 * MIB, limit=0)) is None


def test_network_rate():
    assert network_rate(3000, 1000, 2.0) == pytest.approx(1000.0)
    assert network_rate(3000, 1000, 0.0) is None


@pytest.mark.parametrize("rate,expected", [
    (512, (512, "Bytes/s")),
    (2048, (2.0, "KB/s")),
    (3 * MIB, (3.0, "MB/s")),
    (5 * GIB, (5.0, "GB/s")),
])
def test_scale_byte_rate(rate, expected):
    value, unit = scale_byte_rate(rate)
    assert unit == expected[1]
    assert value == pytest.approx(expected[0])


def test_format_network_rate():
    assert format_network_rate("rx_bytes", 4096, 2048, 1.0) == "2.000KB/s"
    assert format_network_rate("rx_packets", 30, 10, 2.0) == "10.000/s"
    assert format_network_rate("tx_bytes", 10, 10, 0.0) == PLACEHOLDER


def test_resource_usage_text():
    text = resource_usage_text(GIB // 2, GIB, "GB")
    assert text == "0.50GB/1.00GB    "
    assert len(text) == 17


def test_cpu_percent_text():
    assert cpu_percent_text(12.5) == "12.50%  "


def test_total_stats_summary(make_record):
    collection = ContainerCollection([
        make_record("a", memory=100, cpu=(300, 100), system=(5000, 1000)),
        make_record("b", stats=False),
        make_record("c", memory=50, cpu=(150, 100), system=(5000, 1000)),
    ])
    totals = total_stats_summary(collection)
    assert totals.cpu_usage == 250
    assert totals.memory_usage == 150
    assert totals.system_usage == 4000


def test_total_stats_summary_empty():
    totals = total_stats_summary(ContainerCollection())
    assert totals.cpu_usage == 0
    assert totals.system_usage == 0


def test_total_stats_text():
    totals = TotalStats(cpu_usage=250, system_usage=4000, memory_usage=3 * GIB // 2)
    assert total_stats_text(totals) == " CPU 6.25% | Memory 1.50GB "


def test_total_stats_text_without_delta():
    assert total_stats_text(TotalStats()) == f" CPU {PLACEHOLDER} | Memory 0.00GB "
