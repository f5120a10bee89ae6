"""
Exchange Manager - Registry for Exchange Clients

The ExchangeManager builds the enabled exchange clients from settings and
manages their lifecycle. It is an ordinary object owned by whoever creates
it (the FastAPI app, a script, a test); there is no process-wide instance.

Example Usage:
    manager = ExchangeManager.from_settings(settings)
    await manager.initialize_all()

    bittrex = manager.get_exchange("bittrex")
    ticker = await bittrex.get_ticker("BTC-LTC")

    await manager.shutdown_all()

Adding an exchange:
    1. Create the client class (e.g., exchanges/kraken)
    2. Add it to ``exchange_classes()``
"""

from typing import Dict, List, Mapping, Optional, Type
from core.config import Settings
from core.exchange_interface import ExchangeInterface
from core.logging import get_logger

logger = get_logger(__name__)


def exchange_classes() -> Dict[str, Type[ExchangeInterface]]:
    """Map exchange name to client class."""
    # Import here to avoid circular imports (exchange modules import core)
    from exchanges.abucoins import AbucoinsExchange
    from exchanges.binance import BinanceExchange
    from exchanges.bitfinex import BitfinexExchange
    from exchanges.bittrex import BittrexExchange

    return {
        "binance": BinanceExchange,
        "bitfinex": BitfinexExchange,
        "bittrex": BittrexExchange,
        "abucoins": AbucoinsExchange,
    }


class ExchangeManager:
    """
    Registry of exchange clients.

    Attributes:
        exchanges: Dictionary mapping exchange names to client instances

    Example:
        >>> manager = ExchangeManager({"dummy": DummyExchange()})
        >>> manager.list_exchanges()
        ['dummy']
    """

    def __init__(self, exchanges: Optional[Mapping[str, ExchangeInterface]] = None):
        self.exchanges: Dict[str, ExchangeInterface] = {
            name.lower(): exchange for name, exchange in (exchanges or {}).items()
        }
        logger.info(
            f"ExchangeManager initialized with {len(self.exchanges)} exchange(s): "
            f"{', '.join(self.exchanges.keys()) or 'none'}"
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "ExchangeManager":
        """
        Build every exchange listed in ``enabled_exchanges``.

        Raises:
            ValueError: If an enabled exchange has no client class
        """
        available = exchange_classes()
        exchanges = {}
        for name in config.exchanges_list:
            if name not in available:
                raise ValueError(
                    f"Exchange '{name}' is not supported. Available exchanges: {', '.join(available)}"
                )
            exchanges[name] = available[name].from_settings(config)
        return cls(exchanges)

    # ============================================
    # Exchange Retrieval Methods
    # ============================================

    def get_exchange(self, name: str) -> ExchangeInterface:
        """
        Get an exchange client by name (case-insensitive).

        Raises:
            ValueError: If the exchange is not registered
        """
        name = name.lower()

        if name not in self.exchanges:
            available = ", ".join(self.exchanges.keys())
            logger.error(f"Exchange '{name}' not found. Available: {available}")
            raise ValueError(
                f"Exchange '{name}' is not supported. "
                f"Available exchanges: {available}"
            )

        return self.exchanges[name]

    def has_exchange(self, name: str) -> bool:
        return name.lower() in self.exchanges

    def list_exchanges(self) -> List[str]:
        return list(self.exchanges.keys())

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize_all(self) -> None:
        """
        Initialize all registered exchanges.

        A failing exchange is logged and skipped so the others still start.
        """
        logger.info("Initializing all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.initialize()
                logger.info(f"✓ {name.capitalize()} initialized successfully")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

        logger.info("All exchanges initialized")

    async def shutdown_all(self) -> None:
        """Shutdown all exchanges, continuing past individual failures."""
        logger.info("Shutting down all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.shutdown()
                logger.info(f"✓ {name.capitalize()} shut down successfully")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

        logger.info("All exchanges shut down")

    # ============================================
    # Health Check Methods
    # ============================================

    async def health_check_all(self) -> Dict[str, bool]:
        """
        Check health status of all exchanges.

        Returns:
            Dict[str, bool]: exchange name -> True if reachable
        """
        health_status = {}
        for name, exchange in self.exchanges.items():
            try:
                health_status[name] = await exchange.health_check()
            except Exception as e:
                logger.error(f"Health check failed for {name}: {e}")
                health_status[name] = False

        return health_status

    # ============================================
    # Capability Queries
    # ============================================

    def get_exchanges_with_feature(self, feature: str) -> List[str]:
        """
        Example:
            >>> manager.get_exchanges_with_feature("candles")
            ['binance', 'bitfinex', 'abucoins']
        """
        return [
            name for name, exchange in self.exchanges.items()
            if exchange.supports(feature)
        ]

    def get_exchange_capabilities(self, name: str) -> Dict[str, bool]:
        return self.get_exchange(name).capabilities.copy()

    def __repr__(self) -> str:
        return f"<ExchangeManager(exchanges={list(self.exchanges.keys())})>"

    def __len__(self) -> int:
        return len(self.exchanges)
