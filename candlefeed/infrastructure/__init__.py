"""
Candlefeed – Infrastructure Layer
===================================
Implementaciones concretas de interfaces.

Este módulo contiene:
- external/: APIs externas (Binance REST/WS, CoinGecko) y Event Bus

REGLA DE DEPENDENCIA:
Esta capa implementa interfaces definidas en:
- application/ports/

Puede importar de:
- domain/ (entidades, value objects, excepciones)
- application/ (ports)
- shared/ (config, logging)
"""
