"""Tests for the domain crawl worker."""

import asyncio
import time

import pytest

from conftest import PRODUCT_SIGNALS, FakeSession, no_sleep
from shopcrawl.errors import NetworkError, RenderError, SessionError
from shopcrawl.models import CrawlTarget, OutcomeStatus, PageSignals
from shopcrawl.pacer import AntiDetectionPacer
from shopcrawl.worker import DomainCrawlWorker, WorkerState

BASE = "https://shop.test/"
TARGET = CrawlTarget(domain="shop.test", base_url=BASE)


def make_worker(site, config, target=TARGET, **kwargs):
    session = FakeSession(site, target.domain)
    kwargs.setdefault("pacer", AntiDetectionPacer(config, sleep=no_sleep))
    return DomainCrawlWorker(target, session, config, **kwargs), session


class TestWorkerTraversal:
    """Test cases for BFS traversal and classification."""

    @pytest.mark.asyncio
    async def test_category_scenario_depth_two(self, site, fast_config):
        fast_config.max_depth = 2
        site.add(BASE, "/product/123", "/product/456", "/category/shoes")
        site.add("https://shop.test/category/shoes", "/product/789", "/")

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert set(outcome.confirmed) == {
            "https://shop.test/product/123",
            "https://shop.test/product/456",
            "https://shop.test/product/789",
        }
        assert "https://shop.test/category/shoes" not in outcome.confirmed
        assert outcome.failed == []
        assert outcome.status is OutcomeStatus.COMPLETED
        assert outcome.sealed
        assert worker.state is WorkerState.TERMINATED

    @pytest.mark.asyncio
    async def test_product_candidates_are_not_crawled(self, site, fast_config):
        site.add(BASE, "/product/1")
        worker, session = make_worker(site, fast_config)

        await worker.run()

        assert session.visits == [BASE]

    @pytest.mark.asyncio
    async def test_each_url_fetched_once(self, site, fast_config):
        fast_config.max_depth = None
        site.add(BASE, "/a", "/b")
        site.add("https://shop.test/a", "/b", "/", "/a#top")
        site.add("https://shop.test/b", "/a", "/c")
        site.add("https://shop.test/c", "/", "/a", "/b")

        worker, session = make_worker(site, fast_config)
        await worker.run()

        assert len(session.visits) == len(set(session.visits)) == 4

    @pytest.mark.asyncio
    async def test_breadth_first_order(self, site, fast_config):
        site.add(BASE, "/a", "/b")
        site.add("https://shop.test/a", "/a1")
        site.add("https://shop.test/b", "/b1")
        site.add("https://shop.test/a1")
        site.add("https://shop.test/b1")

        worker, session = make_worker(site, fast_config)
        await worker.run()

        assert session.visits == [
            BASE,
            "https://shop.test/a",
            "https://shop.test/b",
            "https://shop.test/a1",
            "https://shop.test/b1",
        ]

    @pytest.mark.asyncio
    async def test_depth_ceiling_respected(self, site, fast_config):
        fast_config.max_depth = 1
        site.add(BASE, "/level1")
        site.add("https://shop.test/level1", "/level2", "/product/deep")
        site.add("https://shop.test/level2", "/product/deeper")

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert "https://shop.test/level2" not in session.visits
        # Links on the deepest crawled page are still classified
        assert outcome.confirmed == ["https://shop.test/product/deep"]

    @pytest.mark.asyncio
    async def test_out_of_scope_links_ignored(self, site, fast_config):
        site.add(BASE, "https://other.test/product/1", "https://other.test/page")

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.confirmed == []
        assert session.visits == [BASE]

    @pytest.mark.asyncio
    async def test_same_candidate_on_many_pages_recorded_once(self, site, fast_config):
        site.add(BASE, "/product/1", "/a")
        site.add("https://shop.test/a", "/product/1")

        worker, _ = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.confirmed == ["https://shop.test/product/1"]

    @pytest.mark.asyncio
    async def test_idempotent_on_static_site(self, site, fast_config):
        fast_config.max_depth = None
        site.add(BASE, "/c1", "/c2", "/product/1")
        site.add("https://shop.test/c1", "/product/2", "/c2")
        site.add("https://shop.test/c2", "/product/3", "/c1")

        first, _ = make_worker(site, fast_config)
        second, _ = make_worker(site, fast_config)

        assert set((await first.run()).confirmed) == set((await second.run()).confirmed)


class TestWorkerFailures:
    """Test cases for per-URL error handling."""

    @pytest.mark.asyncio
    async def test_timeout_on_link_recorded_and_crawl_continues(self, site, fast_config):
        site.add(BASE, "/slow", "/fine")
        site.add("https://shop.test/slow", error=NetworkError("Timed out during navigation"))
        site.add("https://shop.test/fine", "/product/9")

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert "https://shop.test/slow" in outcome.failed
        assert "https://shop.test/fine" in session.visits
        assert outcome.confirmed == ["https://shop.test/product/9"]
        assert outcome.status is OutcomeStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_http_error_status_recorded(self, site, fast_config):
        site.add(BASE, "/gone")
        site.add("https://shop.test/gone", status=503)

        worker, _ = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.failed == ["https://shop.test/gone"]

    @pytest.mark.asyncio
    async def test_settle_failure_fails_only_that_url(self, site, fast_config):
        site.add(BASE, "/broken", "/ok")
        site.add("https://shop.test/broken", "/product/never")
        site.add("https://shop.test/ok", "/product/2")

        session = FakeSession(site, "shop.test")
        original = session.scroll_height

        async def flaky_height():
            if session.visits[-1] == "https://shop.test/broken":
                raise RenderError("evaluation threw")
            return await original()

        session.scroll_height = flaky_height
        worker = DomainCrawlWorker(
            TARGET, session, fast_config, pacer=AntiDetectionPacer(fast_config, sleep=no_sleep)
        )
        outcome = await worker.run()

        assert outcome.failed == ["https://shop.test/broken"]
        assert outcome.confirmed == ["https://shop.test/product/2"]

    @pytest.mark.asyncio
    async def test_unexpected_error_contained_per_url(self, site, fast_config):
        site.add(BASE, "/bad", "/good")
        site.add("https://shop.test/bad", error=RuntimeError("driver hiccup"))
        site.add("https://shop.test/good", "/product/5")

        worker, _ = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.failed == ["https://shop.test/bad"]
        assert outcome.confirmed == ["https://shop.test/product/5"]

    @pytest.mark.asyncio
    async def test_session_error_escapes_unsealed(self, site, fast_config):
        site.add(BASE, "/product/1", "/dead")
        site.add("https://shop.test/dead", error=SessionError("browser has been closed"))

        worker, _ = make_worker(site, fast_config)
        with pytest.raises(SessionError):
            await worker.run()

        assert worker.outcome.confirmed == ["https://shop.test/product/1"]
        assert not worker.outcome.sealed

    @pytest.mark.asyncio
    async def test_run_twice_rejected(self, site, fast_config):
        site.add(BASE)
        worker, _ = make_worker(site, fast_config)
        await worker.run()
        with pytest.raises(RuntimeError):
            await worker.run()


class TestWorkerVerification:
    """Test cases for content verification of product candidates."""

    @pytest.mark.asyncio
    async def test_missing_price_goes_to_failed(self, site, fast_config):
        fast_config.verify_content = True
        site.add(BASE, "/nike-shoe-p-12345")
        site.add(
            "https://shop.test/nike-shoe-p-12345",
            signals=PageSignals(has_add_to_cart=True, has_title=True, has_image=True),
        )

        worker, _ = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.failed == ["https://shop.test/nike-shoe-p-12345"]
        assert outcome.confirmed == []

    @pytest.mark.asyncio
    async def test_verified_candidate_confirmed(self, site, fast_config):
        fast_config.verify_content = True
        site.add(BASE, "/product/1")
        site.add("https://shop.test/product/1", signals=PRODUCT_SIGNALS)

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.confirmed == ["https://shop.test/product/1"]
        assert session.signal_queries == 1

    @pytest.mark.asyncio
    async def test_verification_fetch_error_is_ambiguous(self, site, fast_config):
        fast_config.verify_content = True
        site.add(BASE, "/product/1", "/product/2")
        site.add("https://shop.test/product/1", error=NetworkError("timeout"))
        site.add("https://shop.test/product/2", signals=PRODUCT_SIGNALS)

        worker, _ = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.failed == ["https://shop.test/product/1"]
        assert outcome.confirmed == ["https://shop.test/product/2"]

    @pytest.mark.asyncio
    async def test_listing_page_sharing_product_token_rejected(self, site, fast_config):
        fast_config.verify_content = True
        site.add(BASE, "/products/all")
        site.add("https://shop.test/products/all", signals=PageSignals(has_price=True, has_title=True))

        worker, _ = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.confirmed == []
        assert outcome.failed == ["https://shop.test/products/all"]


class TestWorkerBudgets:
    """Test cases for page and time budgets."""

    @pytest.mark.asyncio
    async def test_page_budget_discards_frontier(self, site, fast_config):
        fast_config.max_pages_per_domain = 2
        site.add(BASE, "/a", "/b", "/c", "/product/1")
        site.add("https://shop.test/a", "/product/2")

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert session.visits == [BASE, "https://shop.test/a"]
        assert outcome.status is OutcomeStatus.BUDGET_EXHAUSTED
        assert set(outcome.confirmed) == {"https://shop.test/product/1", "https://shop.test/product/2"}
        assert worker.frontier.pending == 0
        assert outcome.sealed

    @pytest.mark.asyncio
    async def test_time_budget(self, site, fast_config):
        fast_config.max_duration_seconds = 10
        site.add(BASE, "/a", "/b")
        site.add("https://shop.test/a")
        site.add("https://shop.test/b")
        now = [0.0]

        def clock():
            now[0] += 4.0
            return now[0]

        worker, session = make_worker(site, fast_config, clock=clock)
        outcome = await worker.run()

        assert outcome.status is OutcomeStatus.BUDGET_EXHAUSTED
        assert len(session.visits) < 3

    @pytest.mark.asyncio
    async def test_verification_without_budget_is_ambiguous(self, site, fast_config):
        fast_config.verify_content = True
        fast_config.max_pages_per_domain = 1
        site.add(BASE, "/product/1")
        site.add("https://shop.test/product/1", signals=PRODUCT_SIGNALS)

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert session.visits == [BASE]
        assert outcome.failed == ["https://shop.test/product/1"]

    @pytest.mark.asyncio
    async def test_pacing_precedes_each_navigation(self, site, fast_config):
        site.add(BASE, "/a")
        site.add("https://shop.test/a")
        calls = []

        class CountingPacer(AntiDetectionPacer):
            async def pace(self):
                calls.append(len(session.visits))
                await asyncio.sleep(0)
                return 0.0

        session = FakeSession(site, "shop.test")
        pacer = CountingPacer(fast_config, sleep=no_sleep)
        worker = DomainCrawlWorker(TARGET, session, fast_config, pacer=pacer)
        await worker.run()

        assert calls == [0, 1]


class TestWorkerRetries:
    """Test cases for navigation retries."""

    @pytest.mark.asyncio
    async def test_transient_timeout_retried(self, site, fast_config):
        site.add(BASE, "/a")
        site.add("https://shop.test/a", "/product/1", transient_failures=1)

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.confirmed == ["https://shop.test/product/1"]
        assert outcome.failed == []
        assert session.visits.count("https://shop.test/a") == 2
        assert outcome.pages_fetched == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted_fails_url(self, site, fast_config):
        fast_config.max_retries = 2
        site.add(BASE, "/a")
        site.add("https://shop.test/a", "/product/1", transient_failures=5)

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert outcome.failed == ["https://shop.test/a"]
        assert session.visits.count("https://shop.test/a") == 3

    @pytest.mark.asyncio
    async def test_backoff_between_attempts(self, site, fast_config):
        fast_config.retry_delay = 1.0
        fast_config.backoff_factor = 2.0
        site.add(BASE, "/a")
        site.add("https://shop.test/a", error=NetworkError("connection reset"))
        delays = []

        async def record_sleep(seconds):
            delays.append(seconds)

        worker, _ = make_worker(site, fast_config, sleep=record_sleep)
        await worker.run()

        assert delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, site, fast_config):
        site.add(BASE, "/missing")

        worker, session = make_worker(site, fast_config)
        outcome = await worker.run()

        assert session.visits.count("https://shop.test/missing") == 1
        assert outcome.failed == ["https://shop.test/missing"]

    @pytest.mark.asyncio
    async def test_session_error_not_retried(self, site, fast_config):
        site.add(BASE, "/dead")
        site.add("https://shop.test/dead", error=SessionError("browser has been closed"))

        worker, session = make_worker(site, fast_config)
        with pytest.raises(SessionError):
            await worker.run()

        assert session.visits.count("https://shop.test/dead") == 1


class SlowSession(FakeSession):
    """Session whose navigations hang far longer than any test budget."""

    async def render(self, url):
        await asyncio.sleep(5)
        return await super().render(url)


class TestWorkerTimeBudgetMidPage:
    """Test cases for a time budget running out during one page."""

    @pytest.mark.asyncio
    async def test_slow_page_cut_off_at_budget(self, site, fast_config):
        fast_config.max_duration_seconds = 0.3
        site.add(BASE, "/a")
        session = SlowSession(site, "shop.test")
        worker = DomainCrawlWorker(
            TARGET, session, fast_config, pacer=AntiDetectionPacer(fast_config, sleep=no_sleep)
        )

        started = time.monotonic()
        outcome = await worker.run()

        assert time.monotonic() - started < 2.0
        assert outcome.status is OutcomeStatus.BUDGET_EXHAUSTED
        assert outcome.failed == [BASE]
        assert outcome.sealed
        assert worker.frontier.pending == 0
        assert worker.state is WorkerState.TERMINATED
