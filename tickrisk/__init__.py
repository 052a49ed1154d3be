"""tickrisk - digit-trading risk, portfolio and backtest toolkit.

Layers (leaf → root):
- engine/: pure calculations (Kelly sizing, volatility, returns, correlation)
- business/: stateful components (RiskEngine, PortfolioLedger, config)
- backtest/: BacktestSimulator, walk-forward analysis, strategy comparison
"""

__version__ = "0.1.0"
