"""ledgerstats – monitoring helpers."""
