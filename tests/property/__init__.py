# tests/property/__init__.py
"""Property-based tests for otelpipe.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. Delivery guarantees of the
pipeline (ordering, bounded batches, drop accounting) are exactly that
kind of invariant.

Test categories:
- runtime/: BoundedChannel state machine
- logs/: Batch processor ordering, bounds and drop accounting
- metrics/: Selector totality and aggregator arithmetic
- exporters/: OTLP encoding and header parsing
"""
