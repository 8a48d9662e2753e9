"""Timeline engine domain logic: window validation, source adapters, aggregation and series."""
