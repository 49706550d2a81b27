"""ledgerstats – core infrastructure (configuration, logging, databases)."""
