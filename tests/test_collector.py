import asyncio
import itertools

import pytest

from haraj_scraper.collector import collect, merge_batch
from haraj_scraper.dom import parse_html
from haraj_scraper.models import AdRecord


def _ad_html(ad_id: str, title: str, replies: int | None = None, when: str = "") -> str:
    comments = f'<svg data-icon="comments-alt"></svg><span>{replies}</span>' if replies is not None else ""
    time_label = f'<div dir="rtl">{when}</div>' if when else ""
    return f'<div><a href="/{ad_id}">{title}</a>{time_label}{comments}</div>'


class FakeSource:
    """Replays a fixed list of snapshots; the last one repeats."""

    def __init__(self, pages: list[str], *, has_more: bool = True):
        self.pages = pages
        self.has_more = has_more
        self.snapshots = 0
        self.advances = 0
        self.more_requests = 0

    async def get_snapshot(self):
        html = self.pages[min(self.snapshots, len(self.pages) - 1)]
        self.snapshots += 1
        return parse_html(html, url="https://haraj.com.sa/")

    async def advance(self):
        self.advances += 1

    async def request_more(self):
        self.more_requests += 1
        return self.has_more


def _run(source, **kwargs):
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    ads = asyncio.run(collect(source, sleep=fake_sleep, **kwargs))
    return ads, delays


def test_collect_merges_passes_and_keeps_best_reply_count():
    pages = [
        _ad_html("11164391385", "كامري 2020", replies=2),
        _ad_html("11164391385", "كامري 2020", replies=5) + _ad_html("11164391386", "ددسن غمارتين", replies=1),
        _ad_html("11164391385", "كامري 2020", replies=3, when="قبل 1 ساعة"),
    ]
    source = FakeSource(pages)

    ads, _ = _run(source, max_passes=3, inter_pass_delay=0.5)

    by_id = {ad.id: ad for ad in ads}
    assert set(by_id) == {"11164391385", "11164391386"}
    assert by_id["11164391385"].reply_count == 5
    assert by_id["11164391385"].relative_time == "قبل 1 ساعة"


def test_collect_runs_fixed_number_of_passes_by_default():
    source = FakeSource([_ad_html("11164391385", "كامري 2020")])

    ads, delays = _run(source, max_passes=4, inter_pass_delay=1.2)

    assert len(ads) == 1
    assert source.snapshots == 4
    assert source.advances == 3
    assert source.more_requests == 3
    assert delays == [1.2] * 6


def test_collect_stops_after_idle_passes():
    source = FakeSource([_ad_html("11164391385", "كامري 2020")])

    _run(source, max_passes=8, inter_pass_delay=0, idle_passes=2)

    assert source.snapshots == 3


def test_collect_stops_at_deadline_with_partial_results():
    ticks = itertools.count(0, 10)
    source = FakeSource([_ad_html("11164391385", "كامري 2020"), _ad_html("11164391386", "ددسن غمارتين")])

    ads, _ = _run(source, max_passes=8, inter_pass_delay=0, deadline=15, clock=lambda: next(ticks))

    assert source.snapshots == 1
    assert [ad.id for ad in ads] == ["11164391385"]


def test_collect_returns_empty_for_pages_without_ads():
    source = FakeSource(["<div><a href='/city/جدة'>جدة</a></div>"], has_more=False)

    ads, _ = _run(source, max_passes=2, inter_pass_delay=0)

    assert ads == []


def test_merge_batch_does_not_mutate_accumulator():
    acc = {"1234567": AdRecord(id="1234567", description="قديم", reply_count=4)}
    merged = merge_batch(acc, [AdRecord(id="1234567", description="جديد", reply_count=1), AdRecord(id="", description="بدون رابط")])

    assert acc["1234567"].description == "قديم"
    assert merged["1234567"].description == "جديد"
    assert merged["1234567"].reply_count == 4
    assert merged["بدون رابط"].description == "بدون رابط"


class StallingSource(FakeSource):
    """Serves one snapshot, then never answers again."""

    async def get_snapshot(self):
        if self.snapshots >= 1:
            await asyncio.sleep(60)
        return await super().get_snapshot()


def test_collect_deadline_bounds_a_stalled_snapshot():
    source = StallingSource([_ad_html("11164391385", "كامري 2020")])

    ads = asyncio.run(collect(source, max_passes=5, inter_pass_delay=0, deadline=0.2))

    assert [ad.id for ad in ads] == ["11164391385"]
    assert source.advances == 1


def test_collect_propagates_timeouts_raised_by_the_source():
    class TimingOutSource(FakeSource):
        async def get_snapshot(self):
            raise TimeoutError("page did not respond")

    with pytest.raises(TimeoutError):
        asyncio.run(collect(TimingOutSource(["<div></div>"]), max_passes=2, inter_pass_delay=0, deadline=30))
