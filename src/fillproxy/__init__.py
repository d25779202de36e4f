"""fillproxy - hour-cached range aggregates over execution fills."""
