"""
============================

Market Data Exchange Adapters.

============================

This package contains the exchange adapter implementations. Adapters translate
exchange-specific wire formats into domain models and satisfy the capability
protocols defined in the protocols package.

"""
