# === FILE: link_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска краулера LinkScout через командную строку.

Команды:
  crawl     Обойти сайт и вывести сводку или отображение одной метки
  config    Показать итоговую конфигурацию
  labels    Показать словари групповых и элементных меток

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (дополнительно к stderr)
  --log-format FORMAT Формат логирования (e.g. "%(asctime)s %(levelname)s %(message)s")

Команда crawl опции:
  --ignore-robots     Не учитывать robots.txt
  --ignore-banned     Не проверять запрещённые подстроки
  --ignore-timeout    Отключить общий таймаут
  --single-page       Проверить только ссылки стартовой страницы
  --disallow PATTERNS Дополнительные Disallow-шаблоны (можно через запятую)
  --banned STR        Запрещённая подстрока (можно повторять)
  --timeout-ms N      Общий таймаут обхода (миллисекунд)
  --label LABEL       Вывести отображение страница → href для метки
  --invert            Инвертировать отображение (цель → страницы)
  --pretty            Преформатировать JSON-вывод (отступ 2)

Пример:
  link-scout crawl https://example.com/ --disallow "/private*,/*.php$" --label notFound --pretty
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List

import click
from pydantic import ValidationError

from link_scout import __version__
from link_scout.config import CrawlerConfig, read_config_data
from link_scout.crawler.models import ElementLabel, GroupLabel
from link_scout.engine import start_crawl
from link_scout.logger import DEFAULT_FORMAT, init_logging

CONTEXT_SETTINGS = dict(help_option_names=["--help"])
DEFAULT_CONFIG = Path("configs/default.yaml")
LABEL_CHOICES = [label.value for label in (*GroupLabel, *ElementLabel)]


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _split_patterns(values: Iterable[str]) -> List[str]:
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def _build_config(data: Dict[str, Any], overrides: Dict[str, Any]) -> CrawlerConfig:
    merged = {**data, **overrides}
    if not merged.get("start_url"):
        print_error('Не указан стартовый URL: передайте его аргументом или через "start_url" в конфиге')
    try:
        return CrawlerConfig(**merged)
    except ValidationError as e:
        print_error(f'Некорректная конфигурация: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='LinkScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (дополнительно к stderr)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд LinkScout CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    data: Dict[str, Any] = {}
    if config_path is not None or DEFAULT_CONFIG.exists():
        try:
            data = read_config_data(config_path)
        except Exception as e:
            print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config_data'] = data


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.option('--ignore-robots', is_flag=True, help='Не учитывать robots.txt')
@click.option('--ignore-banned', is_flag=True, help='Не проверять запрещённые подстроки')
@click.option('--ignore-timeout', is_flag=True, help='Отключить общий таймаут обхода')
@click.option('--single-page', is_flag=True, help='Проверить только ссылки стартовой страницы')
@click.option(
    '--disallow', 'disallow',
    multiple=True,
    help='Дополнительные Disallow-шаблоны (через запятую, можно повторять)'
)
@click.option('--banned', 'banned', multiple=True, help='Запрещённая подстрока (можно повторять)')
@click.option('--timeout-ms', 'timeout_ms', type=click.IntRange(min=1), default=None,
              help='Общий таймаут обхода (миллисекунд)')
@click.option('--label', 'label', type=click.Choice(LABEL_CHOICES), default=None,
              help='Вывести отображение для одной метки вместо сводки')
@click.option('--invert', is_flag=True, help='Цель → страницы вместо страница → href')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def crawl(ctx, url, ignore_robots, ignore_banned, ignore_timeout, single_page,
          disallow, banned, timeout_ms, label, invert, pretty):
    """Обойти сайт и вывести результат в JSON."""
    overrides: Dict[str, Any] = {}
    if url:
        overrides['start_url'] = url
    if ignore_robots:
        overrides['ignore_robots_txt'] = True
    if ignore_banned:
        overrides['ignore_banned_strings'] = True
    if ignore_timeout:
        overrides['ignore_timeout'] = True
    if single_page:
        overrides['recursive'] = False
    if disallow:
        overrides['extra_disallow_patterns'] = _split_patterns(disallow)
    if banned:
        overrides['banned_strings'] = list(banned)
    if timeout_ms is not None:
        overrides['max_timeout_ms'] = timeout_ms

    cfg = _build_config(ctx.obj['config_data'], overrides)
    click.echo(f'Starting crawl of {cfg.start_url}', err=True)
    try:
        report = asyncio.run(start_crawl(cfg))
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    if report.timed_out:
        click.secho('Обход остановлен по таймауту, отчёт неполный', fg='yellow', err=True)
    click.echo(report.json(label, invert=invert, pretty=pretty))


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.pass_context
def show_config(ctx, url):
    """Показать итоговую конфигурацию в JSON."""
    cfg = _build_config(ctx.obj['config_data'], {'start_url': url} if url else {})
    click.echo(cfg.model_dump_json(indent=2))


@cli.command('labels', context_settings=CONTEXT_SETTINGS)
def show_labels():
    """Показать допустимые групповые и элементные метки."""
    click.echo(json.dumps(
        {
            'group': [label.value for label in GroupLabel],
            'element': [label.value for label in ElementLabel],
        },
        ensure_ascii=False,
        indent=2,
    ))


if __name__ == "__main__":
    cli()
