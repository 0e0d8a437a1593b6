"""Concurrency-bounded load-test harness for JSON-RPC ledgers."""
