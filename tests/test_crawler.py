# File: tests/test_crawler.py
# End-to-end tests of the crawl scheduler against local aiohttp servers
from __future__ import annotations

import asyncio
import io

import pytest
from aiohttp import web
from PIL import Image

from link_scout.aggregator import CrawlReport
from link_scout.config import CrawlerConfig
from link_scout.crawler.crawler import CrawlScheduler
from link_scout.crawler.models import ElementLabel, GroupLabel
from link_scout.engine import start_crawl

#: upper bound for a whole test crawl; the crawl deadline is much shorter
TEST_TIMEOUT: float = 15.0

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def png_image(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


async def run_crawl(config: CrawlerConfig) -> CrawlReport:
    return await asyncio.wait_for(start_crawl(config), timeout=TEST_TIMEOUT)


def labels_of(report: CrawlReport, url: str) -> set:
    return {str(label) for label in report.store.get(url).labels}


# --------------------------------------------------------------------------- #
#                                   Tests                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_same_target_fetched_once(site, make_config):
    async def root(request):
        origin = f"{request.scheme}://{request.host}"
        return web.Response(
            text=f'<a href="/a">rel</a><a href="{origin}/a">abs</a><a href="/a#part">anchor</a>',
            content_type="text/html",
        )

    base = await site.start(
        {
            "/": root,
            "/a": '<a href="/">home</a><a href="/b">b</a>',
            "/b": '<a href="/a">back</a>',
        }
    )
    report = await run_crawl(make_config(base))

    assert report.complete
    assert site.hits["/"] == 1
    assert site.hits["/a"] == 1
    assert site.hits["/b"] == 1

    group = report.store.get(f"{base}/a")
    assert len(group.elements) == 4
    assert {e.source_document for e in group.elements} == {f"{base}/", f"{base}/b"}
    assert group.has_label(GroupLabel.VISITED)
    assert group.status == 200
    assert report.label_mapping("anchor", invert=True) == {f"{base}/a#part": [f"{base}/"]}

    start = report.store.get(f"{base}/")
    assert start.elements[0].has_label(ElementLabel.START_PAGE)
    assert len(start.elements) == 2


@pytest.mark.asyncio()
async def test_not_found_does_not_stop_siblings(site, make_config):
    base = await site.start(
        {
            "/": '<a href="/missing">broken</a><a href="/ok">ok</a>',
            "/ok": '<a href="/deeper">deeper</a>',
            "/deeper": "<p>end</p>",
        }
    )
    report = await run_crawl(make_config(base))

    assert labels_of(report, f"{base}/missing") == {"link", "internal", "visited", "notFound"}
    assert report.store.get(f"{base}/missing").status == 404
    assert "notFound" not in labels_of(report, f"{base}/ok")
    assert site.hits["/deeper"] == 1
    assert report.label_mapping("notFound") == {f"{base}/": ["/missing"]}


@pytest.mark.asyncio()
async def test_access_errors_are_labelled(site, make_config):
    base = await site.start(
        {
            "/": '<a href="/bad">1</a><a href="/auth">2</a><a href="/deny">3</a><a href="/boom">4</a>',
            "/bad": (400, "bad", "text/html"),
            "/auth": (401, "auth", "text/html"),
            "/deny": (403, "deny", "text/html"),
            "/boom": (500, "boom", "text/html"),
        }
    )
    report = await run_crawl(make_config(base))

    assert "badRequest" in labels_of(report, f"{base}/bad")
    assert "accessDenied" in labels_of(report, f"{base}/auth")
    assert "forbidden" in labels_of(report, f"{base}/deny")
    # unclassified statuses are only logged
    assert labels_of(report, f"{base}/boom") == {"link", "internal", "visited"}
    assert report.store.get(f"{base}/boom").status == 500


@pytest.mark.asyncio()
async def test_mailto_and_external_links_are_not_fetched(site, make_config):
    base = await site.start(
        {"/": '<a href="mailto:team@example.com">mail</a><a href="http://other.invalid/">x</a>'}
    )
    report = await run_crawl(make_config(base))

    assert labels_of(report, "mailto:team@example.com") == {"link", "external", "Email"}
    assert labels_of(report, "http://other.invalid/") == {"link", "external"}
    assert set(site.hits) == {"/robots.txt", "/"}


@pytest.mark.asyncio()
async def test_robots_disallow_and_extra_patterns(site, make_config):
    base = await site.start(
        {
            "/robots.txt": (
                200,
                "User-agent: *\nAllow: /private/ok\nDisallow: /private\n",
                "text/plain",
            ),
            "/": (
                '<a href="/private/secret">s</a><a href="/private/ok">ok</a>'
                '<a href="/public">p</a><a href="/script.php">php</a>'
            ),
            "/private/secret": "<p>secret</p>",
            "/private/ok": "<p>ok</p>",
            "/public": "<p>public</p>",
            "/script.php": "<p>php</p>",
        }
    )
    report = await run_crawl(make_config(base, extra_disallow_patterns="/*.php$"))

    assert "robotsDisallowed" in labels_of(report, f"{base}/private/secret")
    assert "visited" not in labels_of(report, f"{base}/private/secret")
    assert "robotsDisallowed" in labels_of(report, f"{base}/script.php")
    assert site.hits["/private/secret"] == 0
    assert site.hits["/script.php"] == 0
    assert site.hits["/private/ok"] == 1
    assert site.hits["/public"] == 1


@pytest.mark.asyncio()
async def test_ignore_robots_txt(site, make_config):
    base = await site.start(
        {
            "/robots.txt": (200, "User-agent: *\nDisallow: /", "text/plain"),
            "/": '<a href="/page">p</a>',
            "/page": "<p>page</p>",
        }
    )
    report = await run_crawl(make_config(base, ignore_robots_txt=True))

    assert site.hits["/robots.txt"] == 0
    assert site.hits["/page"] == 1
    assert "robotsDisallowed" not in labels_of(report, f"{base}/page")


@pytest.mark.asyncio()
async def test_files_and_unknown_content_types(site, make_config):
    base = await site.start(
        {
            "/": '<a href="/report.pdf">pdf</a><a href="/data">json</a><a href="/logo.PNG">png</a>',
            "/report.pdf": (200, b"%PDF-1.4", "application/pdf"),
            "/data": (200, '{"a": 1}', "application/json"),
            "/logo.PNG": (200, PNG_BYTES, "image/png"),
        }
    )
    report = await run_crawl(make_config(base))

    assert labels_of(report, f"{base}/report.pdf") == {"link", "internal", "visited", "file"}
    assert labels_of(report, f"{base}/data") == {"link", "internal", "visited", "unknownContentType"}
    assert "file" in labels_of(report, f"{base}/logo.PNG")


@pytest.mark.asyncio()
async def test_banned_strings(site, make_config):
    pages = {
        "/": '<a href="/logout">out</a>',
        "/logout": "<p>bye</p>",
    }
    base = await site.start(pages)
    report = await run_crawl(make_config(base, banned_strings=["logout"]))

    assert site.hits["/logout"] == 0
    assert len(report.records(ElementLabel.BANNED_STRING)) == 1

    report = await run_crawl(make_config(base, banned_strings=["logout"], ignore_banned_strings=True))
    assert site.hits["/logout"] == 1
    assert report.records(ElementLabel.BANNED_STRING) == []


@pytest.mark.asyncio()
async def test_single_page_completes_without_requests(site, make_config):
    base = await site.start({"/": "<html><body><p>No links here</p></body></html>"})
    async with CrawlScheduler(make_config(base)) as crawler:
        report = await asyncio.wait_for(crawler.crawl(), timeout=TEST_TIMEOUT)
        assert crawler.session.max_in_flight == 0
        assert crawler.session.request_counter == 0
        assert not crawler.guard.armed

    assert report.complete
    assert len(report.store) == 1


@pytest.mark.asyncio()
async def test_non_recursive_checks_only_start_links(site, make_config):
    base = await site.start(
        {
            "/": '<a href="/a">a</a>',
            "/a": '<a href="/b">b</a>',
            "/b": "<p>b</p>",
        }
    )
    report = await run_crawl(make_config(base, recursive=False))

    assert site.hits["/a"] == 1
    assert site.hits["/b"] == 0
    assert f"{base}/b" not in report.store


@pytest.mark.asyncio()
async def test_timeout_returns_partial_report(site, make_config):
    release = asyncio.Event()

    async def slow(_):
        try:
            await asyncio.wait_for(release.wait(), timeout=5)
        except asyncio.TimeoutError:
            pass
        return web.Response(text='<a href="/after">after</a>', content_type="text/html")

    base = await site.start({"/": '<a href="/slow">slow</a>', "/slow": slow, "/after": "<p>late</p>"})
    try:
        report = await run_crawl(make_config(base, max_timeout_ms=300))
    finally:
        release.set()

    assert report.timed_out
    assert not report.complete
    assert site.hits["/after"] == 0
    # aborted requests are not reported as failures
    assert labels_of(report, f"{base}/slow") == {"link", "internal", "visited"}
    assert f"{base}/after" not in report.store


@pytest.mark.asyncio()
async def test_redirect_off_site_is_labelled(site, make_config):
    async def away(request):
        port = request.url.port
        raise web.HTTPFound(f"http://localhost:{port}/")

    async def inside(_):
        raise web.HTTPFound("/target")

    base = await site.start(
        {
            "/": '<a href="/away">away</a><a href="/inside">inside</a>',
            "/away": away,
            "/inside": inside,
            "/target": "<p>target</p>",
        }
    )
    report = await run_crawl(make_config(base))

    assert "redirects" in labels_of(report, f"{base}/away")
    assert labels_of(report, f"{base}/inside") == {"link", "internal", "visited"}
    assert site.hits["/target"] == 1


@pytest.mark.asyncio()
async def test_images_are_checked_once(site, make_config):
    base = await site.start(
        {
            "/": (
                '<img src="/ok.png" alt="ok"><img src="/missing.png">'
                '<img src="/ok.png" alt="again"><img src="/page.html" alt="html">'
                '<a href="/other">o</a>'
            ),
            "/other": '<img src="/missing.png" alt="m">',
            "/ok.png": (200, png_image(2, 2), "image/png"),
            "/page.html": "<p>not an image</p>",
        }
    )
    report = await run_crawl(make_config(base))

    assert site.hits["/ok.png"] == 1
    assert site.hits["/missing.png"] == 1
    # a load check is not a page visit
    assert labels_of(report, f"{base}/ok.png") == {"image", "internal"}
    assert labels_of(report, f"{base}/missing.png") == {"image", "internal"}

    unloaded = report.records(ElementLabel.UNLOADED)
    assert sorted(e.target_url for e in unloaded) == [
        f"{base}/missing.png",
        f"{base}/missing.png",
        f"{base}/page.html",
    ]
    assert report.records("noAltText")[0].target_url == f"{base}/missing.png"


@pytest.mark.asyncio()
async def test_images_not_checked_when_disabled(site, make_config):
    base = await site.start({"/": '<img src="/missing.png" alt="m">'})
    report = await run_crawl(make_config(base, check_images=False))

    assert site.hits["/missing.png"] == 0
    assert report.records(ElementLabel.UNLOADED) == []
    assert "visited" not in labels_of(report, f"{base}/missing.png")


@pytest.mark.asyncio()
async def test_summary_counts_labels(site, make_config):
    base = await site.start({"/": '<a href="/gone">g</a><a href="mailto:x@example.com">m</a>'})
    report = await run_crawl(make_config(base))

    summary = report.summary()
    assert summary["notFound"] == 1
    assert summary["Email"] == 1
    assert summary["startPage"] == 1
    assert summary["link"] == 2
    assert "forbidden" not in summary


@pytest.mark.asyncio()
async def test_declared_image_size_is_compared_with_natural_size(site, make_config):
    base = await site.start(
        {
            "/": (
                '<img src="/pic.png" alt="exact" width="4" height="3">'
                '<img src="/pic.png" alt="wide" width="10">'
                '<img src="/pic.png" alt="tall" height=" 30 ">'
                '<img src="/pic.png" alt="plain">'
                '<img src="/pic.png" alt="percent" width="50%">'
                '<img src="/corrupt.png" alt="corrupt" width="4">'
            ),
            "/pic.png": (200, png_image(4, 3), "image/png"),
            "/corrupt.png": (200, PNG_BYTES, "image/png"),
        }
    )
    report = await run_crawl(make_config(base))

    assert site.hits["/pic.png"] == 1
    improper = report.records(ElementLabel.IMPROPER_SIZE)
    assert sorted(e.snapshot.get("alt") for e in improper) == ["percent", "tall", "wide"]
    assert [e.target_url for e in report.records(ElementLabel.UNLOADED)] == [f"{base}/corrupt.png"]


@pytest.mark.asyncio()
async def test_unparseable_image_src_does_not_stop_crawl(site, make_config):
    base = await site.start({"/": '<img src="http://[bad" alt="b"><a href="/ok">ok</a>', "/ok": "<p>ok</p>"})
    report = await run_crawl(make_config(base))

    assert report.complete
    assert site.hits["/ok"] == 1
    assert labels_of(report, "http://[bad") == {"image", "external"}
    assert report.records(ElementLabel.UNLOADED) == []


@pytest.mark.asyncio()
async def test_image_target_is_still_crawled_as_link(site, make_config):
    release = asyncio.Event()

    async def slow(_):
        # /slow links to /page only after the image check of /page has reached the server
        await asyncio.wait_for(release.wait(), timeout=5)
        return web.Response(text='<a href="/page">page</a>', content_type="text/html")

    async def page(_):
        release.set()
        return web.Response(text='<a href="/deep">deep</a>', content_type="text/html")

    base = await site.start(
        {"/": '<img src="/page" alt="p"><a href="/slow">slow</a>', "/slow": slow, "/page": page, "/deep": "<p>deep</p>"}
    )
    report = await run_crawl(make_config(base))

    assert report.complete
    assert site.hits["/page"] == 2
    assert site.hits["/deep"] == 1
    assert {"image", "link", "visited"} <= labels_of(report, f"{base}/page")


@pytest.mark.asyncio()
async def test_scheduler_requires_open_session(make_config):
    crawler = CrawlScheduler(make_config("http://127.0.0.1:9/"))
    with pytest.raises(RuntimeError, match="Session not initialized"):
        crawler.fetcher
    with pytest.raises(RuntimeError, match="Session not initialized"):
        await crawler.crawl()
