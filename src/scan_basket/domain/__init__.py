"""Domain types and pure logic: price extraction and basket totals."""
