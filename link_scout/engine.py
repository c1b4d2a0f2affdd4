# File: link_scout/engine.py
"""link_scout.engine: слой оркестрации для запуска обхода и получения отчёта."""

from __future__ import annotations

from link_scout.aggregator import CrawlReport
from link_scout.config import CrawlerConfig
from link_scout.crawler.crawler import CrawlScheduler
from link_scout.logger import logger

__all__ = ["start_crawl"]


async def start_crawl(config: CrawlerConfig) -> CrawlReport:
    """Запускает один обход сайта и возвращает отчёт (неполный при таймауте)."""
    logger.info("Starting crawl…")
    async with CrawlScheduler(config) as crawler:
        report = await crawler.crawl()
    if report.timed_out:
        logger.warning("Crawl of %s stopped by the deadline, report is partial", report.start_url)
    return report
