"""
Core Package

Contains the exchange-agnostic layers every client is built from:
- auth: nonce generation, canonical messages, HMAC signing, request decoration
- request / transport: prepared requests and the aiohttp transport with retries
- normalizer: field tables, error envelopes and status maps
- pagination: the trade-history page walker
- ExchangeInterface / RestExchange: the caller contract and its generic implementation
- ExchangeManager: registry of configured exchange clients
- schemas: Pydantic models for normalized records (Ticker, OrderBook, OrderResult, etc.)

Exchanges differ only in data; this layer holds all the behavior.
"""
