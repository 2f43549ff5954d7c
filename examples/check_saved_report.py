"""Example that checks a saved engine chart report without a simulator."""

from __future__ import annotations

from efi_autotest import Channel, WaveMismatch, assert_wave, assert_wave_null, parse_report
from efi_autotest.waves import describe_channel

REPORT = (
    "wave_chart,"
    "c1!u!312!c1!d!408!c1!u!672!c1!d!768!"
    "c3!u!492!c3!d!588!c3!u!852!c3!d!948!,"
)


def main() -> None:
    chart = parse_report(REPORT)
    x = 312.0
    assert_wave("wasted spark #1", chart, Channel.SPARK_1, 0.1333333, x, x + 360)
    assert_wave("wasted spark #3", chart, Channel.SPARK_3, 0.1333333, x + 180, x + 540)
    assert_wave_null("fiesta", chart, Channel.SPARK_2)
    print(describe_channel(chart, Channel.SPARK_1))

    try:
        assert_wave("late spark", chart, Channel.SPARK_1, 0.1333333, x + 2, x + 360)
    except WaveMismatch as exc:
        print(exc)


if __name__ == "__main__":
    main()
