"""Component webhook reconciler for deployed package secrets."""
