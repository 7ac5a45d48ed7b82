"""
Segment reconciliation and ordering engine.

Pure, synchronous building blocks that decide which segment files are
merged, in which order and grouped how. No media bytes are read here:

- grouping: Source group classification and group priority order
- timestamps: Chronological offset resolution (filename, then media header)
- ordering: Per-group ordering with a deterministic tie-break
- plan: Concatenation plan builder (per-group concat, then final merge)
"""
