"""ledgerstats – scheduling entrypoints."""
