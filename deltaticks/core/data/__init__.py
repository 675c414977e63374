"""Storage, ingestion and candle building."""
