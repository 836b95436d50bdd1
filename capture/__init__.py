"""
Capture glue around the pose store

- geopose: OGC GeoPose 1.0 Basic-Quaternion / Basic-YPR documents
- frames: sampling-rate expressions, per-frame capture instants, OpenCV
  frame extraction
- postprocess: VideoPostProcessJob (store injected explicitly), tag_still,
  per-item retry state for delivery sinks
- records: upstream label documents -> CaptureRecord -> RoadPoint batches,
  sensor log replay into a PoseStore

Entry point:
    python -m capture.postprocess --video run.mp4 --samples samples.jsonl --start-ns ...
"""
