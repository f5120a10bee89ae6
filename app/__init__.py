"""
FastAPI Application Package

Serves normalized market data from the configured exchange clients over REST.
"""
