"""ローカル検索順位トラッカー."""
