"""
hostwatch 命令行入口模块。

提供 CLI 命令：hosts（主机可用性）、metrics（主机指标）、problems（当前告警）、check（连接测试）。
连接配置来自 YAML 文件；未指定 --config 时读取环境变量 / .env。
"""
import asyncio
import json
import logging
import sys

import click
import yaml

from hostwatch import __version__
from hostwatch.core.config import load_settings_file, settings as app_settings
from hostwatch.core.exceptions import BusinessError
from hostwatch.core.log import configure_logging
from hostwatch.services.host_monitor import HostMonitor
from hostwatch.services.prober import NetworkProber


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _run(ctx: click.Context, operation):
    """加载配置并执行一个异步操作；配置或 Zabbix 错误时以退出码 1 结束。"""
    config_path = ctx.obj["config_path"]
    try:
        monitoring = load_settings_file(config_path) if config_path else app_settings.monitoring()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    monitor = HostMonitor(
        prober=NetworkProber(timeout=app_settings.probe_timeout_seconds),
        rpc_timeout=app_settings.rpc_timeout_seconds,
    )
    try:
        return asyncio.run(operation(monitor, monitoring))
    except BusinessError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--config", "-c", default=None, help="Zabbix settings YAML file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, config, verbose):
    """hostwatch - Zabbix 主机可用性对账工具。"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config

    configure_logging(logging.DEBUG if verbose else logging.WARNING)

    if ctx.invoked_subcommand is None:
        click.echo(f"hostwatch v{__version__}")
        click.echo("Use --help for available commands")


@cli.command()
@click.pass_context
def hosts(ctx):
    """列出全部主机及其可用性结论。"""
    result = _run(ctx, lambda monitor, s: monitor.list_hosts(s))
    _echo_json([h.model_dump(mode="json") for h in result])


@cli.command()
@click.argument("host_ids", nargs=-1, required=True)
@click.pass_context
def metrics(ctx, host_ids):
    """输出指定主机的性能指标。"""
    result = _run(ctx, lambda monitor, s: monitor.get_metrics(s, list(host_ids)))
    _echo_json([m.model_dump(mode="json") for m in result])


@cli.command()
@click.option("--all", "include_resolved", is_flag=True, help="Include resolved problems")
@click.pass_context
def problems(ctx, include_resolved):
    """列出当前告警问题。"""
    result = _run(ctx, lambda monitor, s: monitor.list_problems(s, include_resolved=include_resolved))
    _echo_json([p.model_dump(mode="json") for p in result])


@cli.command()
@click.pass_context
def check(ctx):
    """测试 Zabbix 连接与 Token。"""
    result = _run(ctx, lambda monitor, s: monitor.test_connection(s))
    if result.success:
        click.echo(f"✅ {result.message}")
    else:
        click.echo(f"❌ {result.message}", err=True)
        sys.exit(1)


def main():
    """CLI 入口函数。"""
    cli()


if __name__ == "__main__":
    main()
