"""
Backtest CLI Main Entry Point - 回测命令行主入口

Usage:
    tickrisk --help
    tickrisk run --help
"""

import click
from dotenv import load_dotenv

from tickrisk import __version__
from tickrisk.backtest.cli.commands.compare import compare
from tickrisk.backtest.cli.commands.run import run
from tickrisk.backtest.cli.commands.walk_forward import walk_forward


@click.group()
@click.version_option(version=__version__, prog_name="tickrisk")
def cli() -> None:
    """数字合约风控回测命令行工具

    回放历史 tick，评估策略在真实交易成本和风控限制下的表现。

    \b
    示例:
        # 单次回测
        tickrisk run -t data/R_10.csv -S R_10 -s frequency --max-trades 100

        # 滚动验证
        tickrisk walk-forward -t data/R_10.csv -S R_10 -s frequency

        # 策略比较
        tickrisk compare -t data/R_10.csv -S R_10 -s frequency -s time_series
    """
    pass


# 注册子命令
cli.add_command(run)
cli.add_command(walk_forward)
cli.add_command(compare)


def main() -> None:
    """CLI 入口函数"""
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
