"""
Media collaborators of the segment merger, built on PyAV.

- media_probe: Container start-time probing for timestamp resolution
- concat_executor: Stream copy, lossless concat and transcoding concat
  stages that execute a ConcatenationPlan
"""
