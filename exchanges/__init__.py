"""
Exchange Clients Package

One subpackage per exchange (Binance, Bitfinex, Bittrex, Abucoins), each with:
- fields.py: signing convention, error envelope, status maps and field tables
- __init__.py: the client class, a thin RestExchange subclass holding endpoints

Adding an exchange means describing its payloads in a new fields.py and
mapping its endpoints; signing, transport and normalization are shared.
"""
